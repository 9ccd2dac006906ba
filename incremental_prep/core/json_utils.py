"""
JSON serialization helpers for checkpoints, decision logs and run metadata.

Rule parameters and statistics often carry numpy scalars; these are converted
to plain Python values on the way out.
"""

import json
from datetime import date, datetime
from typing import Any

import numpy as np


class NumpyJSONEncoder(json.JSONEncoder):
    """
    JSON encoder that understands numpy scalars and arrays, dates and sets.

    NaN and infinite numpy floats are written as null.

    Example:
        >>> json.dumps({'count': np.int64(3)}, cls=NumpyJSONEncoder)
        '{"count": 3}'
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, np.bool_):
            return bool(obj)

        if isinstance(obj, np.integer):
            return int(obj)

        if isinstance(obj, np.floating):
            if np.isnan(obj) or np.isinf(obj):
                return None
            return float(obj)

        if isinstance(obj, np.ndarray):
            return obj.tolist()

        if isinstance(obj, (datetime, date)):
            return obj.isoformat()

        if isinstance(obj, set):
            return sorted(obj, key=str)

        return super().default(obj)
