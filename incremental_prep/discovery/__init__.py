"""
Rule discovery: pattern detectors, rule models, confidence and convergence.

The discovery engine lives in ``incremental_prep.discovery.engine`` and is
not re-exported here because it depends on the analysis models.
"""

from .models import (
    ConfidenceScore,
    ConvergenceInfo,
    DetectedPattern,
    PatternType,
    PreprocessingRule,
    PreprocessingRuleType,
    RuleState,
    Severity,
)
from .confidence import ConfidenceCalculator
from .convergence import ConvergenceDetector

__all__ = [
    'ConfidenceScore',
    'ConvergenceInfo',
    'DetectedPattern',
    'PatternType',
    'PreprocessingRule',
    'PreprocessingRuleType',
    'RuleState',
    'Severity',
    'ConfidenceCalculator',
    'ConvergenceDetector',
]
