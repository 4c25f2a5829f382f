# app/services/lifecycle/manual_trigger.py
"""
Operator-initiated reclamation.

Runs the exact same reclamation as the scheduler, after checking that the
caller holds the superadmin capability.
"""

import logging
from typing import Optional

from app.auth import Principal, authorize_reclamation
from app.clock import Clock
from app.models import ReclamationTrigger
from app.services.lifecycle.reclamation_service import (
    ReclamationConfig,
    ReclamationResult,
    run_reclamation,
)
from app.store.base import ReportStore

logger = logging.getLogger(__name__)


def run_manual_reclamation(
    principal: Principal,
    store: ReportStore,
    clock: Optional[Clock] = None,
    config: Optional[ReclamationConfig] = None,
    dry_run: bool = False,
) -> ReclamationResult:
    """
    Raises:
        Forbidden: caller is not a superadmin (nothing is evaluated)
    """
    authorize_reclamation(principal)

    logger.info(
        f"Manual reclamation requested by {principal.subject}",
        extra={"event": "manual_trigger", "initiated_by": principal.actor, "dry_run": dry_run},
    )
    return run_reclamation(
        store,
        clock=clock,
        config=config,
        trigger=ReclamationTrigger.MANUAL,
        dry_run=dry_run,
        initiated_by=principal.actor,
    )
