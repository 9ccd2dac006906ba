"""
Base class for pattern detectors.

Every detector scans a single column and reports zero or more
DetectedPattern records. The discovery engine runs each registered detector
whose ``is_applicable`` returns True against every column.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import pandas as pd

from incremental_prep.core.cancellation import CancellationToken, check_cancelled
from incremental_prep.core.exceptions import DetectionError, OperationCancelledError
from incremental_prep.discovery.models import DetectedPattern, PatternType


class PatternDetector(ABC):
    """
    Abstract base for all pattern detectors.

    Subclasses implement ``is_applicable`` and ``_detect``; ``detect`` checks
    cancellation before any scan work starts.

    Example:
        >>> detector = MissingValueDetector()
        >>> if detector.is_applicable(df['age']):
        ...     patterns = detector.detect(df['age'], 'age')
    """

    pattern_type: PatternType

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def is_applicable(self, column: pd.Series) -> bool:
        """Return True if this detector can meaningfully scan ``column``."""

    def detect(
        self,
        column: pd.Series,
        column_name: str,
        cancellation: Optional[CancellationToken] = None
    ) -> List[DetectedPattern]:
        """
        Scan ``column`` and return the patterns found.

        Raises:
            OperationCancelledError: If ``cancellation`` is (or becomes) set
            DetectionError: If the scan itself fails
        """
        check_cancelled(cancellation)
        if len(column) == 0:
            return []
        try:
            return self._detect(column, column_name, cancellation)
        except OperationCancelledError:
            raise
        except Exception as e:
            raise DetectionError(
                f"{self.name} failed on column '{column_name}': {str(e)}",
                detector=self.name,
                column=column_name,
                original_exception=e
            )

    @abstractmethod
    def _detect(
        self,
        column: pd.Series,
        column_name: str,
        cancellation: Optional[CancellationToken]
    ) -> List[DetectedPattern]:
        ...
