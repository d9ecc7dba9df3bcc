"""Adding an insurance plan from an immutable form draft."""

import structlog

from claritycare.domain.errors import InvalidInput
from claritycare.domain.models import InsurancePlan, PlanDraft

logger = structlog.get_logger(__name__)

REQUIRED_PLAN_FIELDS = ("name", "member_id")


def missing_required_fields(draft: PlanDraft) -> list[str]:
    return [field for field in REQUIRED_PLAN_FIELDS if not getattr(draft, field).strip()]


def finalize_plan(draft: PlanDraft, plan_id: str) -> InsurancePlan:
    """
    Turn a completed draft into an InsurancePlan.

    Raises:
        InvalidInput: a required field is blank. ``field`` names the first one
            and the message lists all of them.
    """
    missing = missing_required_fields(draft)
    if missing:
        raise InvalidInput(
            missing[0], f"Please fill in all required fields: {', '.join(missing)}"
        )

    plan = InsurancePlan(
        id=plan_id,
        name=draft.name.strip(),
        type=draft.type.strip(),
        member_id=draft.member_id.strip(),
        group_number=draft.group_number.strip(),
    )
    logger.info("insurance_plan_added", plan_id=plan_id, plan_type=plan.type or None)
    return plan
