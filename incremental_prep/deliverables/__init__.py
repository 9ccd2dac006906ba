"""
Files handed over at the end of a workflow run.

Key Components:
- ReportGenerator: Markdown run report
- DeliverableGenerator: Cleaned data, report and metadata in one directory
"""

from .deliverable_generator import DeliverableGenerator, DeliverableManifest
from .report_generator import ReportGenerator

__all__ = [
    'DeliverableGenerator',
    'DeliverableManifest',
    'ReportGenerator',
]
