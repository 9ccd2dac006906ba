"""
Convergence Detector - decides when further sampling stops changing the rules.

Rules are matched across stages by signature (type, first column,
description); ids are regenerated every stage and never compared.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from incremental_prep.core.constants import (
    DEFAULT_CONVERGENCE_THRESHOLD,
    CONFIDENCE_CHANGE_EPSILON,
    AFFECTED_FRACTION_CHANGE_EPSILON,
)
from incremental_prep.discovery.models import ConvergenceInfo, PreprocessingRule

logger = logging.getLogger(__name__)


def _by_signature(rules: Sequence[PreprocessingRule]) -> Dict[Tuple[str, str, str], PreprocessingRule]:
    return {rule.signature: rule for rule in rules}


def is_modified(previous: PreprocessingRule, current: PreprocessingRule) -> bool:
    """Same signature, but confidence or affected fraction moved beyond epsilon."""
    return (
        abs(current.confidence - previous.confidence) > CONFIDENCE_CHANGE_EPSILON
        or abs(current.affected_fraction - previous.affected_fraction) > AFFECTED_FRACTION_CHANGE_EPSILON
    )


class ConvergenceDetector:
    """
    Compares the rule sets of two consecutive stages.

    change_rate = (new + modified + removed) / max(1, |previous|); the sets have
    converged when change_rate <= threshold. An empty previous set is never
    converged: there is no evidence yet.

    Example:
        >>> detector = ConvergenceDetector()
        >>> detector.has_converged(stage1_rules, stage2_rules, threshold=0.02)
        True
    """

    def __init__(self, default_threshold: float = DEFAULT_CONVERGENCE_THRESHOLD):
        self.default_threshold = default_threshold

    def has_converged(
        self,
        previous: Sequence[PreprocessingRule],
        current: Sequence[PreprocessingRule],
        threshold: float = None
    ) -> bool:
        return self.get_convergence_info(previous, current, threshold).has_converged

    def get_convergence_info(
        self,
        previous: Sequence[PreprocessingRule],
        current: Sequence[PreprocessingRule],
        threshold: float = None
    ) -> ConvergenceInfo:
        if previous is None or current is None:
            raise ValueError("Rule lists for convergence comparison must not be None")

        threshold = self.default_threshold if threshold is None else threshold

        previous_map = _by_signature(previous)
        current_map = _by_signature(current)

        new: List[Tuple] = [sig for sig in current_map if sig not in previous_map]
        removed: List[Tuple] = [sig for sig in previous_map if sig not in current_map]
        modified: List[Tuple] = [
            sig for sig in current_map
            if sig in previous_map and is_modified(previous_map[sig], current_map[sig])
        ]

        change_rate = (len(new) + len(modified) + len(removed)) / max(1, len(previous_map))
        converged = len(previous_map) > 0 and change_rate <= threshold

        info = ConvergenceInfo(
            has_converged=converged,
            change_rate=change_rate,
            threshold=threshold,
            new_rules=len(new),
            modified_rules=len(modified),
            removed_rules=len(removed),
            stable_rules=len(current_map) - len(new) - len(modified),
            total_rules=len(current_map),
            previous_rules=len(previous_map),
        )

        logger.debug(f"{info.status}: {info.summary}")
        return info
