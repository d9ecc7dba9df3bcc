"""
Domain models for the health-insurance navigator.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation and are frozen so every update produces a new value.
"""

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ClaimStatus(str, Enum):
    """Adjudication states a claim can be in."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    APPEALED = "appealed"


class BenefitStatus(str, Enum):
    """Consumption bands for a capped benefit."""

    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"


class StatusDisplay(BaseModel):
    """Presentation hint derived from a domain status."""

    model_config = ConfigDict(frozen=True)

    color_tag: str
    icon_tag: str
    label: str


class BenefitProgress(BaseModel):
    """A capped allowance and how much of it has been consumed this plan year."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    used: float = Field(ge=0.0, description="Amount consumed; may exceed total")
    total: float = Field(gt=0.0, description="Plan-year capacity")
    unit: str = Field(description="Display unit: '$' for currency, otherwise a count noun")
    color_tag: str = Field(default="", description="Presentation hint, opaque to the core")

    @property
    def is_currency(self) -> bool:
        return self.unit == "$"


class Claim(BaseModel):
    """A submitted request for reimbursement of a specific service."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    date: date
    provider: str
    service: str
    amount: float = Field(ge=0.0)
    status: ClaimStatus = ClaimStatus.PENDING
    description: str = ""


class ClaimsSummary(BaseModel):
    """Per-status claim counts."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(ge=0)
    approved_count: int = Field(ge=0)
    denied_count: int = Field(ge=0)
    pending_count: int = Field(ge=0)
    appealed_count: int = Field(ge=0)


class Appeal(BaseModel):
    """A member's appeal while it is being composed. Never stored."""

    model_config = ConfigDict(frozen=True)

    claim_id: str
    reason: str = Field(min_length=1)


class CoverageQuery(BaseModel):
    """Free-text symptom or diagnosis description sent for coverage analysis."""

    model_config = ConfigDict(frozen=True)

    query: str = Field(min_length=1)


class CoverageDetermination(BaseModel):
    """Structured coverage answer supplied by the external analyzer."""

    model_config = ConfigDict(frozen=True)

    covered: bool
    cpt_code: str = Field(description="CPT procedure code for the billed service")
    description: str
    coverage_note: str
    deductible_note: str
    pre_auth_required: bool
    suggestions: list[str] = Field(default_factory=list)


class BenefitSnapshot(BaseModel):
    """Display-ready state derived from a BenefitProgress."""

    model_config = ConfigDict(frozen=True)

    benefit: BenefitProgress
    percentage: float = Field(ge=0.0, le=100.0)
    raw_percentage: float = Field(ge=0.0)
    status: BenefitStatus
    limit_reached: bool
    display: StatusDisplay
    usage_label: str
    limit_message: str | None = None


class InsurancePlan(BaseModel):
    """An insurance plan registered to the member."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str = ""
    member_id: str
    group_number: str = ""
    is_active: bool = True


class PlanDraft(BaseModel):
    """Form state for a plan being added. Replaced wholesale on every edit."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    type: str = ""
    member_id: str = ""
    group_number: str = ""

    def with_updates(self, **changes: str) -> "PlanDraft":
        """Return a new draft with the given fields replaced."""
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown plan draft fields: {sorted(unknown)}")
        return self.model_validate({**self.model_dump(), **changes})


class MemberProfile(BaseModel):
    """Member contact details shown alongside the plan."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str = ""
    phone: str = ""
    date_of_birth: date | None = None
    address: str = ""
