# app/services/lifecycle/__init__.py
"""
Report lifecycle services.

This package provides:
- Stage machine and authoring operations
- Soft delete, recovery and hard delete
- The expiration policy engine
- Scheduled and manual reclamation
"""

from app.services.lifecycle.manual_trigger import run_manual_reclamation
from app.services.lifecycle.policy import (
    ExpirationAction,
    ExpirationDecision,
    ExpirationPolicy,
    evaluate,
    is_recoverable,
    recoverable_until,
)
from app.services.lifecycle.reclamation_service import (
    ReclamationConfig,
    ReclamationResult,
    run_reclamation,
)
from app.services.lifecycle.recovery_service import (
    DeletedReport,
    hard_delete,
    list_deleted,
    recover,
    soft_delete,
)
from app.services.lifecycle.scheduler import ReclamationScheduler, build_scheduler
from app.services.lifecycle.stages import (
    advance_stage,
    can_transition,
    create_report,
    edit_report,
    validate_transition,
)

__all__ = [
    # Stages
    "advance_stage",
    "can_transition",
    "create_report",
    "edit_report",
    "validate_transition",
    # Recovery
    "DeletedReport",
    "hard_delete",
    "list_deleted",
    "recover",
    "soft_delete",
    # Policy
    "ExpirationAction",
    "ExpirationDecision",
    "ExpirationPolicy",
    "evaluate",
    "is_recoverable",
    "recoverable_until",
    # Reclamation
    "ReclamationConfig",
    "ReclamationResult",
    "ReclamationScheduler",
    "build_scheduler",
    "run_manual_reclamation",
    "run_reclamation",
]
