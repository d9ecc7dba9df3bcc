"""
Dashboard assembly: the member's plan, benefit usage, claim counts and notices.

Combines the benefit tracker and the claims ledger into one snapshot the
home screen can render, and turns noteworthy states into member notices.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

import structlog

from claritycare.domain.models import (
    BenefitProgress,
    BenefitSnapshot,
    BenefitStatus,
    Claim,
    ClaimsSummary,
    ClaimStatus,
    InsurancePlan,
)
from claritycare.services import benefit_tracker, claims_ledger
from claritycare.services.appeal_composer import format_currency

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MemberNotice:
    """Something the member should look at."""

    kind: str
    title: str
    description: str
    color_tag: str
    subject_id: str


@dataclass(frozen=True)
class DashboardSnapshot:
    """Everything the dashboard needs, derived from raw records."""

    plan: InsurancePlan | None
    benefits: list[BenefitSnapshot]
    claims: ClaimsSummary
    notices: list[MemberNotice] = field(default_factory=list)

    def benefit(self, name: str) -> BenefitSnapshot | None:
        return next((b for b in self.benefits if b.benefit.name == name), None)


def benefit_notices(snapshots: Iterable[BenefitSnapshot]) -> list[MemberNotice]:
    """One notice per benefit in the critical band."""
    notices = []
    for snapshot in snapshots:
        if snapshot.status != BenefitStatus.CRITICAL:
            continue
        notices.append(
            MemberNotice(
                kind="benefit",
                title=f"{snapshot.benefit.name}: {snapshot.limit_message}",
                description=f"{snapshot.usage_label} used ({snapshot.percentage:.0f}%)",
                color_tag=snapshot.display.color_tag,
                subject_id=snapshot.benefit.name,
            )
        )
    return notices


def claim_notices(claims: Iterable[Claim]) -> list[MemberNotice]:
    """One notice per denied claim that can still be appealed."""
    display = claims_ledger.status_display(ClaimStatus.DENIED)
    return [
        MemberNotice(
            kind="claim",
            title=f"Claim {claim.id} was denied",
            description=(
                f"{claim.service} at {claim.provider} for {format_currency(claim.amount)} "
                "can be appealed"
            ),
            color_tag=display.color_tag,
            subject_id=claim.id,
        )
        for claim in claims_ledger.appealable_claims(claims)
    ]


def build_dashboard(
    plan: InsurancePlan | None,
    benefits: Iterable[BenefitProgress],
    claims: Iterable[Claim],
) -> DashboardSnapshot:
    """Derive the full dashboard state from the member's records."""
    claim_list = list(claims)
    snapshots = benefit_tracker.track_benefits(benefits)
    notices = benefit_notices(snapshots) + claim_notices(claim_list)

    logger.debug(
        "dashboard_built",
        benefit_count=len(snapshots),
        claim_count=len(claim_list),
        notice_count=len(notices),
    )

    return DashboardSnapshot(
        plan=plan,
        benefits=snapshots,
        claims=claims_ledger.summarize(claim_list),
        notices=notices,
    )


def dispatch_notices(
    notices: Iterable[MemberNotice], handlers: list[Callable[[MemberNotice], None]]
) -> int:
    """Hand notices to delivery handlers (push, email, ...). Returns deliveries made."""
    delivered = 0
    for notice in notices:
        for handler in handlers:
            try:
                handler(notice)
                delivered += 1
            except Exception as e:
                logger.error("notice_dispatch_failed", error=str(e), notice_title=notice.title)
    return delivered
