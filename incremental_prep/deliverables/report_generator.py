"""
Markdown run report generator.

Renders a completed WorkflowState as a human-readable report with:
- Run summary (records, duration, convergence, rule counts)
- Approved rules and rules still waiting for review
- Reviewer decisions
- Per-stage details
- Deliverables list and run configuration
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Template

from incremental_prep.core.config import WorkflowConfig
from incremental_prep.core.exceptions import DeliverableError

logger = logging.getLogger(__name__)


def format_duration(seconds: float) -> str:
    """Seconds as hh:mm:ss."""
    total = int(round(max(0.0, seconds)))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def run_duration(state) -> float:
    if state.completed_at is None:
        return sum(stage.duration for stage in state.stages)
    return (state.completed_at - state.started_at).total_seconds()


class ReportGenerator:
    """
    Generates markdown processing reports from workflow state.

    Example:
        >>> generator = ReportGenerator()
        >>> report = generator.generate_report(state, config, deliverables={'Cleaned Data': 'out/cleaned_data.csv'})
        >>> generator.save_report(report, 'out/report.md')
    """

    def generate_report(
        self,
        state,
        config: Optional[WorkflowConfig] = None,
        deliverables: Optional[Dict[str, str]] = None
    ) -> str:
        """
        Render the report for a workflow run.

        Args:
            state: Completed WorkflowState
            config: Settings the run used (omits the configuration section when None)
            deliverables: Label to path of every file produced alongside the report

        Returns:
            Markdown text
        """
        template_data = self._prepare_template_data(state, config, deliverables or {})
        report = Template(REPORT_TEMPLATE, trim_blocks=True, lstrip_blocks=True,
                          keep_trailing_newline=True).render(**template_data)

        logger.info(f"Generated report with {len(report.splitlines())} lines")
        return report

    def save_report(self, report: str, output_path: str) -> Path:
        """
        Write a rendered report, creating parent directories.

        Raises:
            DeliverableError: If the file cannot be written
        """
        output_file = Path(output_path)
        try:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            with open(output_file, 'w', encoding='utf-8') as f:
                f.write(report)
        except OSError as e:
            raise DeliverableError(f"Error writing report: {str(e)}", path=str(output_file), original_exception=e)

        logger.info(f"Report saved to: {output_file}")
        return output_file

    def _prepare_template_data(
        self,
        state,
        config: Optional[WorkflowConfig],
        deliverables: Dict[str, str]
    ) -> Dict[str, Any]:
        approved = [r for r in state.rules if r.is_approved]
        pending = state.pending_rules
        confidences = [r.confidence for r in state.rules]

        application = state.application_result.to_dict() if state.application_result else state.application_summary

        return {
            'session_id': state.session_id,
            'dataset_name': Path(state.dataset_path).name if state.dataset_path else None,
            'generated_at': datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            'total_rows': f"{state.total_rows:,}",
            'duration': format_duration(run_duration(state)),
            'converged': state.converged,
            'average_confidence': f"{sum(confidences) / len(confidences):.2%}" if confidences else "n/a",
            'rule_count': len(state.rules),
            'approved_rules': [self._rule_row(r) for r in approved],
            'pending_rules': [self._rule_row(r) for r in pending],
            'decisions': [self._decision_row(d) for d in state.decisions],
            'stages': [self._stage_row(s) for s in state.stages],
            'application': application,
            'deliverables': deliverables,
            'configuration': json.dumps(config.to_dict(), indent=2) if config is not None else None,
        }

    @staticmethod
    def _rule_row(rule) -> Dict[str, Any]:
        return {
            'type': rule.type.value,
            'columns': ", ".join(rule.column_names),
            'description': rule.description,
            'confidence': f"{rule.confidence:.2%}",
            'priority': rule.priority,
            'affected_rows': f"{rule.affected_rows:,}",
            'user_feedback': rule.user_feedback,
        }

    @staticmethod
    def _decision_row(decision) -> Dict[str, Any]:
        return {
            'rule_id': decision.approved_rule.id,
            'selected_option': decision.answer.selected_option,
            'recommended_option': decision.question.recommended_option,
            'user_id': decision.user_id,
            'notes': decision.notes,
        }

    @staticmethod
    def _stage_row(stage) -> Dict[str, Any]:
        return {
            'number': stage.stage_number,
            'ratio': f"{stage.ratio:.2%}",
            'sample_size': f"{stage.sample_size:,}",
            'duration': format_duration(stage.duration),
            'rule_count': stage.rule_count,
            'hitl_rule_count': stage.hitl_rule_count,
            'quality_score': f"{stage.quality_score:.2%}",
            'status': stage.convergence.status,
        }


REPORT_TEMPLATE = """# Incremental Preprocessing Report

**Session ID**: `{{ session_id }}`
{% if dataset_name %}
**Dataset**: `{{ dataset_name }}`
{% endif %}
**Generated**: {{ generated_at }} UTC

---

## Summary

- **Total Records**: {{ total_rows }}
- **Processing Duration**: {{ duration }}
- **Stages Completed**: {{ stages|length }}
- **Converged**: {{ "Yes" if converged else "No" }}
- **Average Rule Confidence**: {{ average_confidence }}
- **Rules Discovered**: {{ rule_count }}
- **Rules Approved**: {{ approved_rules|length }}
- **Rules Pending Review**: {{ pending_rules|length }}
{% if application %}
- **Rules Applied Successfully**: {{ application.successful_rules }}/{{ application.total_rules }}
- **Rows Affected**: {{ application.total_rows_affected }}
{% endif %}

---

## Rules Applied ({{ approved_rules|length }} total)

{% for rule in approved_rules %}
{{ loop.index }}. **{{ rule.type }}**
   - **Columns**: {{ rule.columns }}
   - **Description**: {{ rule.description }}
   - **Confidence**: {{ rule.confidence }}
   - **Affected Rows**: {{ rule.affected_rows }}
{% if rule.user_feedback %}
   - **User Feedback**: {{ rule.user_feedback }}
{% endif %}

{% else %}
*No rules were approved for application.*

{% endfor %}
{% if pending_rules %}
## Pending Review ({{ pending_rules|length }} rules)

{% for rule in pending_rules %}
- **{{ rule.type }}** on {{ rule.columns }}: {{ rule.description }} (priority {{ rule.priority }})
{% endfor %}

{% endif %}
{% if decisions %}
## Reviewer Decisions

| Rule | Selected | Recommended | User | Notes |
|---|---|---|---|---|
{% for decision in decisions %}
| {{ decision.rule_id }} | {{ decision.selected_option }} | {{ decision.recommended_option or "-" }} | {{ decision.user_id }} | {{ decision.notes or "" }} |
{% endfor %}

{% endif %}
---

## Stage Details

{% for stage in stages %}
### Stage {{ stage.number }}

- **Sample Ratio**: {{ stage.ratio }}
- **Sample Size**: {{ stage.sample_size }} records
- **Duration**: {{ stage.duration }}
- **Rules Discovered**: {{ stage.rule_count }} ({{ stage.hitl_rule_count }} need review)
- **Quality Score**: {{ stage.quality_score }}
- **Convergence**: {{ stage.status }}

{% endfor %}
---
{% if deliverables %}

## Deliverables

{% for label, path in deliverables.items() %}
- **{{ label }}**: `{{ path }}`
{% endfor %}

---
{% endif %}
{% if configuration %}

## Configuration

```json
{{ configuration }}
```

---
{% endif %}

*Report generated by incremental_prep*
"""
