"""Core business logic components."""

from .ledger import CreditLedger
from .compliance import ComplianceValidator
from .planner import EditPlanner
from .scheduler import TaskScheduler
from .batch import BatchOrchestrator
from .workflow import WorkflowController

__all__ = [
    "CreditLedger",
    "ComplianceValidator",
    "EditPlanner",
    "TaskScheduler",
    "BatchOrchestrator",
    "WorkflowController",
]
