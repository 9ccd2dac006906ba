"""
Incremental preprocessing rule discovery.

Samples a large tabular dataset in growing stages, detects data-quality
patterns, turns them into preprocessing rules, scores their confidence across
stages and stops once the rule set converges. Rules that need a human
decision go through the HITL workflow before being applied.

Key Components:
- SamplingEngine: Random, stratified and adaptive sampling
- SampleAnalyzer: Per-column statistics and quality score
- RuleDiscoveryEngine: Pattern detectors to prioritized rules
- RuleApplier: Applies approved rules to a DataFrame
- HITLWorkflowService: Reviewer questions, answers and the decision log
- IncrementalWorkflowOrchestrator: The staged workflow end to end
- DeliverableGenerator: Cleaned data, run report and metadata
"""

from .analysis.sample_analyzer import SampleAnalyzer
from .application.rule_applier import RuleApplier
from .core.cancellation import CancellationToken
from .core.config import SamplingConfig, WorkflowConfig
from .deliverables.deliverable_generator import DeliverableGenerator
from .discovery.engine import RuleDiscoveryEngine
from .hitl.workflow import HITLWorkflowService
from .orchestrator import IncrementalWorkflowOrchestrator, WorkflowState
from .sampling.engine import SamplingEngine

__version__ = "0.1.0"

__all__ = [
    'SampleAnalyzer',
    'RuleApplier',
    'CancellationToken',
    'SamplingConfig',
    'WorkflowConfig',
    'DeliverableGenerator',
    'RuleDiscoveryEngine',
    'HITLWorkflowService',
    'IncrementalWorkflowOrchestrator',
    'WorkflowState',
    'SamplingEngine',
]
