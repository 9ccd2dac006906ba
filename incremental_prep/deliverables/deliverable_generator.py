"""
Deliverable Generator - writes everything a finished run hands over.

Output directory layout:
    cleaned_data.csv   Full dataset with approved rules applied
    report.md          Human-readable run report
    metadata.json      Machine-readable run summary

The cleaned data file is skipped when the run did not apply rules; the
report is skipped when ``generate_report`` is off.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from incremental_prep.core.config import WorkflowConfig
from incremental_prep.core.constants import CLEANED_DATA_FILENAME, METADATA_FILENAME, REPORT_FILENAME
from incremental_prep.core.exceptions import DeliverableError
from incremental_prep.core.json_utils import NumpyJSONEncoder
from incremental_prep.deliverables.report_generator import ReportGenerator, format_duration, run_duration

logger = logging.getLogger(__name__)


@dataclass
class DeliverableManifest:
    """Paths of the files a run produced. Missing deliverables are None."""
    output_directory: str
    cleaned_data_path: Optional[str] = None
    report_path: Optional[str] = None
    metadata_path: Optional[str] = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'output_directory': self.output_directory,
            'cleaned_data_path': self.cleaned_data_path,
            'report_path': self.report_path,
            'metadata_path': self.metadata_path,
            'generated_at': self.generated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeliverableManifest":
        return cls(
            output_directory=data['output_directory'],
            cleaned_data_path=data.get('cleaned_data_path'),
            report_path=data.get('report_path'),
            metadata_path=data.get('metadata_path'),
            generated_at=datetime.fromisoformat(data['generated_at']),
        )


class DeliverableGenerator:
    """
    Generates all deliverables from a completed workflow.

    Example:
        >>> generator = DeliverableGenerator()
        >>> manifest = generator.generate_all(state, "./output", config)
        >>> manifest.report_path
        'output/report.md'
    """

    def __init__(self, report_generator: Optional[ReportGenerator] = None):
        self.report_generator = report_generator or ReportGenerator()

    def generate_all(self, state, output_directory: str, config: Optional[WorkflowConfig] = None) -> DeliverableManifest:
        """
        Write cleaned data, report and metadata into ``output_directory``.

        Args:
            state: Completed WorkflowState
            output_directory: Created when missing
            config: Settings the run used

        Returns:
            DeliverableManifest with the paths actually written

        Raises:
            DeliverableError: If any file cannot be written
        """
        logger.info(f"Generating all deliverables to: {output_directory}")
        output_dir = Path(output_directory)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DeliverableError(
                f"Cannot create output directory: {output_dir}", path=str(output_dir), original_exception=e
            )

        manifest = DeliverableManifest(output_directory=str(output_dir))

        if state.processed_data is not None:
            manifest.cleaned_data_path = str(
                self.save_cleaned_data(state.processed_data, output_dir / CLEANED_DATA_FILENAME)
            )
        else:
            logger.warning("Run has no processed data; cleaned data file not written")

        if config is None or config.generate_report:
            manifest.report_path = str(output_dir / REPORT_FILENAME)
        manifest.metadata_path = str(output_dir / METADATA_FILENAME)

        if manifest.report_path:
            self.generate_report(state, manifest.report_path, config, manifest)
        self.generate_metadata(state, manifest.metadata_path, config)

        logger.info("All deliverables generated successfully")
        return manifest

    def save_cleaned_data(self, data: pd.DataFrame, output_path) -> Path:
        """
        Save the cleaned DataFrame as CSV.

        Raises:
            DeliverableError: If the file cannot be written
        """
        output_file = Path(output_path)
        logger.info(f"Saving cleaned data to: {output_file}")
        try:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            data.to_csv(output_file, index=False)
        except OSError as e:
            raise DeliverableError(
                f"Failed to write cleaned data: {output_file}", path=str(output_file), original_exception=e
            )

        logger.info(f"Cleaned data saved. Rows: {len(data):,}")
        return output_file

    def generate_report(
        self,
        state,
        output_path,
        config: Optional[WorkflowConfig] = None,
        manifest: Optional[DeliverableManifest] = None
    ) -> Path:
        deliverables = {}
        if manifest is not None:
            if manifest.cleaned_data_path:
                deliverables['Cleaned Data'] = manifest.cleaned_data_path
            if manifest.report_path:
                deliverables['This Report'] = manifest.report_path
            if manifest.metadata_path:
                deliverables['Workflow Metadata'] = manifest.metadata_path

        report = self.report_generator.generate_report(state, config, deliverables)
        return self.report_generator.save_report(report, output_path)

    def generate_metadata(self, state, output_path, config: Optional[WorkflowConfig] = None) -> Path:
        """
        Write the run summary as JSON.

        Raises:
            DeliverableError: If the file cannot be written
        """
        output_file = Path(output_path)
        logger.info(f"Generating workflow metadata to: {output_file}")

        confidences = [r.confidence for r in state.rules]
        application = state.application_result.to_dict() if state.application_result else state.application_summary

        metadata = {
            'session_id': state.session_id,
            'dataset_path': state.dataset_path,
            'total_records': state.total_rows,
            'current_stage': state.current_stage,
            'total_duration': format_duration(run_duration(state)),
            'confidence_score': sum(confidences) / len(confidences) if confidences else None,
            'has_converged': state.converged,
            'started_at': state.started_at,
            'completed_at': state.completed_at,
            'completed_stages': {
                str(stage.stage_number): {
                    'sample_size': stage.sample_size,
                    'sample_ratio': stage.ratio,
                    'rules_discovered': stage.rule_count,
                    'duration': format_duration(stage.duration),
                    'quality_score': stage.quality_score,
                }
                for stage in state.stages
            },
            'rules_discovered': [
                {
                    'id': rule.id,
                    'type': rule.type.value,
                    'column_names': list(rule.column_names),
                    'description': rule.description,
                    'confidence': rule.confidence,
                    'is_approved': rule.is_approved,
                    'user_feedback': rule.user_feedback,
                }
                for rule in state.rules
            ],
            'pending_rules': [rule.id for rule in state.pending_rules],
            'decision_count': len(state.decisions),
            'application': (
                {k: v for k, v in application.items() if k != 'results'} if application else None
            ),
            'config': config.to_dict() if config is not None else None,
        }

        try:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            with open(output_file, 'w', encoding='utf-8') as f:
                json.dump(metadata, f, indent=2, ensure_ascii=False, cls=NumpyJSONEncoder)
        except (OSError, TypeError, ValueError) as e:
            raise DeliverableError(
                f"Failed to write metadata: {output_file}", path=str(output_file), original_exception=e
            )

        logger.info("Metadata generated successfully")
        return output_file
