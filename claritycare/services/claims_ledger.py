"""
Claim records and the status transitions a claim may undergo.

The ledger never mutates a claim. Every transition returns a new record and
the caller decides how to persist or replace it.

State machine:
    pending   (terminal here, adjudicated upstream)
    approved  (terminal)
    denied -> appealed
    appealed  (terminal)
"""

from collections.abc import Iterable, Sequence

import structlog

from claritycare.domain.errors import EmptyAppealReason, InvalidTransition
from claritycare.domain.models import Claim, ClaimsSummary, ClaimStatus, StatusDisplay

logger = structlog.get_logger(__name__)

ALLOWED_TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    ClaimStatus.DENIED: frozenset({ClaimStatus.APPEALED}),
}

CLAIM_STATUS_DISPLAY: dict[ClaimStatus, StatusDisplay] = {
    ClaimStatus.APPROVED: StatusDisplay(
        color_tag="#4CAF50", icon_tag="checkmark.circle.fill", label="Approved"
    ),
    ClaimStatus.DENIED: StatusDisplay(
        color_tag="#F44336", icon_tag="xmark.circle.fill", label="Denied"
    ),
    ClaimStatus.PENDING: StatusDisplay(color_tag="#FF9800", icon_tag="clock.fill", label="Pending"),
    ClaimStatus.APPEALED: StatusDisplay(
        color_tag="#2196F3", icon_tag="arrow.clockwise.circle.fill", label="Appealed"
    ),
}

UNKNOWN_STATUS_DISPLAY = StatusDisplay(
    color_tag="#9E9E9E", icon_tag="questionmark.circle.fill", label="Unknown"
)


def status_display(status: ClaimStatus | str) -> StatusDisplay:
    """Look up the color and icon for a claim status, falling back for unknown values."""
    try:
        return CLAIM_STATUS_DISPLAY[ClaimStatus(status)]
    except ValueError:
        return UNKNOWN_STATUS_DISPLAY


def summarize(claims: Iterable[Claim]) -> ClaimsSummary:
    """Count claims per status. Counts always add up to the total."""
    counts = dict.fromkeys(ClaimStatus, 0)
    for claim in claims:
        counts[claim.status] += 1

    return ClaimsSummary(
        total=sum(counts.values()),
        approved_count=counts[ClaimStatus.APPROVED],
        denied_count=counts[ClaimStatus.DENIED],
        pending_count=counts[ClaimStatus.PENDING],
        appealed_count=counts[ClaimStatus.APPEALED],
    )


def is_terminal(status: ClaimStatus) -> bool:
    return not ALLOWED_TRANSITIONS.get(status)


def transition(claim: Claim, target: ClaimStatus) -> Claim:
    """Move a claim to ``target`` if the state machine allows it."""
    if target not in ALLOWED_TRANSITIONS.get(claim.status, frozenset()):
        raise InvalidTransition(claim.status, target)
    return claim.model_copy(update={"status": target})


def can_appeal(claim: Claim) -> bool:
    return claim.status == ClaimStatus.DENIED


def appeal(claim: Claim, reason: str) -> Claim:
    """
    Mark a denied claim as appealed.

    The reason is checked before the status, so a blank reason is reported
    as EmptyAppealReason whatever state the claim is in.

    Raises:
        EmptyAppealReason: reason is blank after trimming.
        InvalidTransition: claim is not denied.
    """
    if not reason or not reason.strip():
        raise EmptyAppealReason()

    appealed = transition(claim, ClaimStatus.APPEALED)
    logger.info("claim_appealed", claim_id=claim.id, provider=claim.provider)
    return appealed


def appealable_claims(claims: Iterable[Claim]) -> list[Claim]:
    return [claim for claim in claims if can_appeal(claim)]


def find_claim(claims: Iterable[Claim], claim_id: str) -> Claim | None:
    return next((claim for claim in claims if claim.id == claim_id), None)


def replace_claim(claims: Sequence[Claim], updated: Claim) -> tuple[Claim, ...]:
    """Return a new sequence with the claim sharing ``updated.id`` swapped out."""
    if find_claim(claims, updated.id) is None:
        raise KeyError(f"No claim with id {updated.id}")
    return tuple(updated if claim.id == updated.id else claim for claim in claims)
