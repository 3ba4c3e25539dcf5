from .global_students import ImportReport, reconcile_global_students
from .runner import ReconciliationReport, ReconciliationRunner, reconcile_subject_emails

__all__ = [
    "ImportReport",
    "ReconciliationReport",
    "ReconciliationRunner",
    "reconcile_global_students",
    "reconcile_subject_emails",
]
