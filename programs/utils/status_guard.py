"""
Program status transitions.

States: Pending → Approved | Rejected; Approved → Ongoing | Completed | Cancelled;
Ongoing → Completed | Cancelled. Rejected, Completed and Cancelled are terminal.
"""

import logging

from django.utils import timezone

from ..exceptions import InvalidStatusTransition

logger = logging.getLogger(__name__)

PENDING = 'Pending'
APPROVED = 'Approved'
REJECTED = 'Rejected'
ONGOING = 'Ongoing'
COMPLETED = 'Completed'
CANCELLED = 'Cancelled'

VALID_TRANSITIONS = {
    PENDING: [APPROVED, REJECTED],
    APPROVED: [ONGOING, COMPLETED, CANCELLED],
    ONGOING: [COMPLETED, CANCELLED],
    REJECTED: [],   # terminal
    COMPLETED: [],  # terminal
    CANCELLED: [],  # terminal
}

REVIEW_STATUSES = (APPROVED, REJECTED)


def allowed_targets(current):
    return list(VALID_TRANSITIONS.get(current, []))


def can_transition(current, target):
    """Check if a status transition is valid."""
    return target in VALID_TRANSITIONS.get(current, [])


def validate_transition(current, target):
    """Raise InvalidStatusTransition unless ``current`` may move to ``target``."""
    if not can_transition(current, target):
        raise InvalidStatusTransition(current, target, allowed_targets(current))


def set_status(program, new_status, actor=None):
    """
    Persist a guarded status change on ``program`` and return it.

    Authorization is the caller's job; ``actor`` is only recorded in the log.
    There is no undo: the new status is saved immediately.
    """
    validate_transition(program.status, new_status)

    previous = program.status
    program.status = new_status
    update_fields = ['status', 'updated_at']
    if new_status == APPROVED:
        program.approved_at = timezone.now()
        update_fields.append('approved_at')
    program.save(update_fields=update_fields)

    who = actor.user.email if actor is not None else 'system'
    logger.info(f"Program {program.pk} status {previous} -> {new_status} by {who}")
    return program
