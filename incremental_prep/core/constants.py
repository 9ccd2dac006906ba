"""
Incremental Prep Constants.

Heuristic thresholds, severity bands and default values used throughout the
rule discovery pipeline. Centralizing them keeps the detectors free of magic
numbers and makes each heuristic tunable in one place.
"""

# ============================================================================
# Missing Value Detection
# ============================================================================

# Tokens treated as missing after trim + upper-case
MISSING_VALUE_TOKENS: frozenset = frozenset({"NULL", "NA", "N/A", "NAN", "NONE", "-", "?"})

# Placeholder used in examples for a genuine null cell
NULL_EXAMPLE_PLACEHOLDER: str = "[NULL]"

# Maximum number of examples carried by a DetectedPattern
MAX_PATTERN_EXAMPLES: int = 5


# ============================================================================
# Severity Bands (affected fraction)
# ============================================================================

SEVERITY_CRITICAL_THRESHOLD: float = 0.50
SEVERITY_HIGH_THRESHOLD: float = 0.20
SEVERITY_MEDIUM_THRESHOLD: float = 0.05


# ============================================================================
# Outlier Detection
# ============================================================================

# 3 standard deviations captures 99.7% of a normal distribution
OUTLIER_Z_SCORE_THRESHOLD: float = 3.0

# Tukey's fence
OUTLIER_IQR_MULTIPLIER: float = 1.5

# Reporting window: below is noise, above is a deeper data problem
OUTLIER_MIN_FRACTION: float = 0.01
OUTLIER_MAX_FRACTION: float = 0.30

OUTLIER_HIGH_FRACTION: float = 0.20
OUTLIER_MEDIUM_FRACTION: float = 0.10


# ============================================================================
# Type Inference
# ============================================================================

TYPE_INFERENCE_SAMPLE_SIZE: int = 100
TYPE_MAJORITY_THRESHOLD: float = 0.70
TYPE_MIXED_THRESHOLD: float = 0.30

BOOLEAN_TRUE_TOKENS: frozenset = frozenset({"TRUE", "YES", "Y", "1", "ON"})
BOOLEAN_FALSE_TOKENS: frozenset = frozenset({"FALSE", "NO", "N", "0", "OFF"})


# ============================================================================
# Category Variation
# ============================================================================

# Beyond this many normalized values the column is not categorical
MAX_CATEGORIES: int = 100

# Levenshtein similarity for candidate typo pairs
CATEGORY_SIMILARITY_THRESHOLD: float = 0.85

MAX_CASE_VARIATION_EXAMPLES: int = 3


# ============================================================================
# Type Inconsistency / Whitespace / Encoding
# ============================================================================

TYPE_INCONSISTENCY_MIN_MINORITY: float = 0.05
TYPE_BUCKET_EXAMPLES: int = 3

WHITESPACE_MEDIUM_FRACTION: float = 0.50

# Heuristic, not a guaranteed-correct signal
ENCODING_CONFIDENCE: float = 0.85
ENCODING_LETTER_RATIO: float = 1.5
ENCODING_EXAMPLE_MAX_LENGTH: int = 50
REPLACEMENT_CHARACTER: str = "\ufffd"


# ============================================================================
# Rule Discovery
# ============================================================================

SEVERITY_BASE_PRIORITY: dict = {
    "CRITICAL": 10,
    "HIGH": 7,
    "MEDIUM": 5,
    "LOW": 3,
}

RULE_TYPE_PRIORITY_ADJUSTMENT: dict = {
    "MISSING_VALUE_STRATEGY": 2,
    "TYPE_CONVERSION": 2,
    "OUTLIER_HANDLING": 1,
    "ENCODING_NORMALIZATION": 1,
}

MIN_PRIORITY: int = 1
MAX_PRIORITY: int = 10


# ============================================================================
# Confidence Scoring
# ============================================================================

CONSISTENCY_WEIGHT: float = 0.5
COVERAGE_WEIGHT: float = 0.3
STABILITY_WEIGHT: float = 0.2

HIGH_CONFIDENCE_THRESHOLD: float = 0.98
MEDIUM_CONFIDENCE_THRESHOLD: float = 0.90

# Expected application success rate per rule type
RULE_SUCCESS_RATES: dict = {
    "WHITESPACE_NORMALIZATION": 0.99,
    "ENCODING_NORMALIZATION": 0.95,
    "DATE_FORMAT_STANDARDIZATION": 0.90,
    "NUMERIC_FORMAT_STANDARDIZATION": 0.90,
    "MISSING_VALUE_STRATEGY": 0.85,
    "TYPE_CONVERSION": 0.80,
    "OUTLIER_HANDLING": 0.85,
    "CATEGORY_MAPPING": 0.90,
    "BUSINESS_LOGIC_DECISION": 0.75,
}
DEFAULT_SUCCESS_RATE: float = 0.80


# ============================================================================
# Convergence
# ============================================================================

DEFAULT_CONVERGENCE_THRESHOLD: float = 0.02
CONFIDENCE_CHANGE_EPSILON: float = 0.05
AFFECTED_FRACTION_CHANGE_EPSILON: float = 0.05


# ============================================================================
# Sampling
# ============================================================================

DEFAULT_STAGE_RATIOS: tuple = (0.001, 0.005, 0.015, 0.025, 1.0)
DEFAULT_RANDOM_SEED: int = 42
DEFAULT_DISTRIBUTION_TOLERANCE: float = 0.05
NULL_STRATUM_LABEL: str = "NULL"

ADAPTIVE_MIN_CLASSES: int = 2
ADAPTIVE_MAX_CLASSES: int = 100
ADAPTIVE_MAX_CARDINALITY_RATIO: float = 0.5
ADAPTIVE_MIN_ROWS_PER_CLASS: int = 5


# ============================================================================
# Sample Analysis
# ============================================================================

MAX_CATEGORICAL_VALUES: int = 10
PERCENTILES: tuple = (0.01, 0.05, 0.10, 0.25, 0.50, 0.75, 0.90, 0.95, 0.99)

HIGH_MISSING_PERCENTAGE: float = 50.0
MODERATE_MISSING_PERCENTAGE: float = 20.0
HIGH_OUTLIER_PERCENTAGE: float = 5.0

IDENTIFIER_UNIQUE_RATIO: float = 0.95
LOW_CARDINALITY_MAX_UNIQUE: int = 20
LOW_CARDINALITY_MAX_RATIO: float = 0.1
HIGH_CARDINALITY_MIN_UNIQUE: int = 100
HIGH_CARDINALITY_MIN_RATIO: float = 0.5

NUMERIC_BYTES_PER_VALUE: int = 8
STRING_BYTES_PER_VALUE: int = 50

DEFAULT_ANALYSIS_CONVERGENCE_THRESHOLD: float = 0.05


# ============================================================================
# HITL / Configuration
# ============================================================================

HITL_DECISIONS_DIRECTORY: str = "hitl-decisions"
HITL_TIMESTAMP_FORMAT: str = "%Y%m%d%H%M%S"

# Size guard for YAML workflow configuration (1MB)
MAX_CONFIG_FILE_SIZE: int = 1024 * 1024


# ============================================================================
# Deliverables
# ============================================================================

CLEANED_DATA_FILENAME: str = "cleaned_data.csv"
REPORT_FILENAME: str = "report.md"
METADATA_FILENAME: str = "metadata.json"
