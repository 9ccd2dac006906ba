"""Configuration parsing and validation."""

import os
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml

from incremental_prep.core.exceptions import ConfigError, ConfigValidationError
from incremental_prep.core.constants import (
    DEFAULT_STAGE_RATIOS,
    DEFAULT_RANDOM_SEED,
    DEFAULT_DISTRIBUTION_TOLERANCE,
    DEFAULT_CONVERGENCE_THRESHOLD,
    HITL_DECISIONS_DIRECTORY,
    MAX_CONFIG_FILE_SIZE,
)


class SamplingStrategyType(Enum):
    """Row selection strategy used by the sampling engine."""
    AUTO = "AUTO"
    RANDOM = "RANDOM"
    STRATIFIED = "STRATIFIED"
    ADAPTIVE = "ADAPTIVE"


@dataclass
class SamplingConfig:
    """
    Settings for a single sampling call.

    Attributes:
        label_column: Column used for stratification (None disables it)
        stages: Sample ratios for the incremental stages
        strategy: Which sampling strategy to use
        max_stages: Upper bound on the number of stages
        confidence_threshold: Minimum confidence for a stage to count as settled
        distribution_tolerance: Allowed per-class proportion drift when stratifying
        enable_early_stopping: Stop once statistical summaries converge
        convergence_threshold: Drift threshold for statistical convergence
        random_seed: Seed for the row selection generator
    """
    label_column: Optional[str] = None
    stages: List[float] = field(default_factory=lambda: list(DEFAULT_STAGE_RATIOS))
    strategy: SamplingStrategyType = SamplingStrategyType.AUTO
    max_stages: int = 5
    confidence_threshold: float = 0.8
    distribution_tolerance: float = DEFAULT_DISTRIBUTION_TOLERANCE
    enable_early_stopping: bool = True
    convergence_threshold: float = 0.01
    random_seed: int = DEFAULT_RANDOM_SEED

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SamplingConfig":
        data = dict(data or {})
        strategy = data.pop('strategy', SamplingStrategyType.AUTO.value)
        try:
            strategy_type = (
                strategy if isinstance(strategy, SamplingStrategyType)
                else SamplingStrategyType(str(strategy).upper())
            )
        except ValueError:
            raise ConfigValidationError(
                f"Unknown sampling strategy: {strategy}",
                field="sampling.strategy",
                expected=", ".join(s.value for s in SamplingStrategyType),
                actual=str(strategy)
            )

        unknown = set(data) - {f for f in cls.__dataclass_fields__ if f != 'strategy'}
        if unknown:
            raise ConfigValidationError(
                f"Unknown sampling settings: {', '.join(sorted(unknown))}",
                field="sampling"
            )

        config = cls(strategy=strategy_type, **data)
        _validate_ratios(config.stages, "sampling.stages")
        return config

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result['strategy'] = self.strategy.value
        return result


@dataclass
class WorkflowConfig:
    """
    Settings for an end-to-end incremental discovery run.

    Attributes:
        stage_ratios: Sample ratio for each discovery stage, in order
        max_stages: Stage budget
        convergence_threshold: Rule-set change rate at which discovery stops
        enable_early_stopping: Stop the stage loop once converged
        skip_hitl: Auto-approve HITL rules instead of asking a human
        apply_rules: Apply approved rules to the full dataset at the end
        continue_on_failure: Keep applying rules after one fails
        decision_log_directory: Base directory for the hitl-decisions folder
        checkpoint_directory: Where checkpoints are written (None disables)
        enable_checkpoints: Persist state after every stage
        output_directory: Where run deliverables are written (None disables)
        generate_report: Include the markdown run report in the deliverables
        session_id: Audit session identifier (generated when None)
        user_id: Audit user identifier
        sampling: Sampling engine settings
    """
    stage_ratios: List[float] = field(default_factory=lambda: [0.1, 0.3, 0.5])
    max_stages: int = 5
    convergence_threshold: float = DEFAULT_CONVERGENCE_THRESHOLD
    enable_early_stopping: bool = True
    skip_hitl: bool = False
    apply_rules: bool = True
    continue_on_failure: bool = True
    decision_log_directory: str = "."
    checkpoint_directory: Optional[str] = None
    enable_checkpoints: bool = False
    output_directory: Optional[str] = None
    generate_report: bool = True
    session_id: Optional[str] = None
    user_id: str = "unknown"
    sampling: SamplingConfig = field(default_factory=SamplingConfig)

    @property
    def decisions_path(self) -> Path:
        return Path(self.decision_log_directory) / HITL_DECISIONS_DIRECTORY

    @classmethod
    def from_yaml(cls, config_path: str) -> "WorkflowConfig":
        """
        Load workflow configuration from a YAML file.

        The file is expected to contain a top-level ``workflow`` mapping
        (a bare mapping is accepted too).

        Raises:
            ConfigError: If file not found, too large or not valid YAML
            ConfigValidationError: If values are invalid
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        file_size = os.path.getsize(config_file)
        if file_size > MAX_CONFIG_FILE_SIZE:
            raise ConfigError(
                f"Configuration file too large: {file_size:,} bytes. "
                f"Maximum allowed: {MAX_CONFIG_FILE_SIZE:,} bytes"
            )

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML file: {str(e)}")
        except UnicodeDecodeError as e:
            raise ConfigError(f"Invalid file encoding (expected UTF-8): {str(e)}")

        if config_dict is None:
            return cls()
        if not isinstance(config_dict, dict):
            raise ConfigValidationError(
                "Configuration root must be a mapping",
                expected="mapping",
                actual=type(config_dict).__name__
            )

        return cls.from_dict(config_dict.get('workflow', config_dict))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowConfig":
        data = dict(data)
        sampling = SamplingConfig.from_dict(data.pop('sampling', None))

        unknown = set(data) - {f for f in cls.__dataclass_fields__ if f != 'sampling'}
        if unknown:
            raise ConfigValidationError(
                f"Unknown workflow settings: {', '.join(sorted(unknown))}",
                field="workflow"
            )

        config = cls(sampling=sampling, **data)
        config.validate()
        return config

    def validate(self) -> None:
        _validate_ratios(self.stage_ratios, "stage_ratios")

        if self.max_stages < 1:
            raise ConfigValidationError(
                "max_stages must be at least 1",
                field="max_stages",
                expected=">= 1",
                actual=str(self.max_stages)
            )

        if not 0.0 <= self.convergence_threshold <= 1.0:
            raise ConfigValidationError(
                "convergence_threshold must be within [0, 1]",
                field="convergence_threshold",
                expected="0 <= threshold <= 1",
                actual=str(self.convergence_threshold)
            )

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result['sampling'] = self.sampling.to_dict()
        return result


def _validate_ratios(ratios: List[float], field_name: str) -> None:
    if not ratios:
        raise ConfigValidationError(f"{field_name} must not be empty", field=field_name)

    for i, ratio in enumerate(ratios):
        if not isinstance(ratio, (int, float)) or not 0.0 < ratio <= 1.0:
            raise ConfigValidationError(
                f"Sample ratio must be in (0, 1], got {ratio}",
                field=f"{field_name}[{i}]",
                expected="0 < ratio <= 1",
                actual=str(ratio)
            )
