from commitstatus.reconcile.evaluator import StatusEvaluator, evaluate
from commitstatus.reconcile.reconciler import StatusReconciler, UpsertResult
from commitstatus.reconcile.types import Notification, Notifier

__all__ = [
    "Notification",
    "Notifier",
    "StatusEvaluator",
    "StatusReconciler",
    "UpsertResult",
    "evaluate",
]
