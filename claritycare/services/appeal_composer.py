"""
Appeal letter generation.

The composer is pure template substitution: the submission date is passed in
rather than read from the clock, so identical inputs always yield the same
letter. Copying the letter to the clipboard or handing it to an email client
belongs to the caller.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict

from claritycare.domain.errors import EmptyAppealReason, EmptyReason
from claritycare.domain.models import Appeal, Claim
from claritycare.services import claims_ledger

DEFAULT_MEMBER_NAME = "[Your Name]"

APPEAL_LETTER_TEMPLATE = """Dear Claims Department,

I am writing to appeal the denial of my claim {claim_id} dated {claim_date}.

Claim Details:
- Provider: {provider}
- Service: {service}
- Amount: {amount}
- Description: {description}

Reason for Appeal:
{reason}

I believe this claim should be covered under my policy and request a review of this decision.

Thank you for your consideration.

Sincerely,
{member_name}
[Member ID: {member_id}]
[Date: {submission_date}]
"""


def format_currency(amount: float) -> str:
    """Dollar amount without grouping separators: 1200 -> '$1200', 99.5 -> '$99.50'."""
    if float(amount).is_integer():
        return f"${int(amount)}"
    return f"${amount:.2f}"


def compose_letter(
    claim: Claim,
    reason: str,
    member_id: str,
    submission_date: date,
    member_name: str | None = None,
) -> str:
    """
    Render the appeal letter for a claim.

    Args:
        claim: The claim being appealed
        reason: Member-supplied rationale, included verbatim
        member_id: Member identifier for the closing block
        submission_date: Date printed in the closing block
        member_name: Signature line; a placeholder is used when omitted

    Raises:
        EmptyReason: reason is blank after trimming.
    """
    if not reason or not reason.strip():
        raise EmptyReason()

    return APPEAL_LETTER_TEMPLATE.format(
        claim_id=claim.id,
        claim_date=claim.date.isoformat(),
        provider=claim.provider,
        service=claim.service,
        amount=format_currency(claim.amount),
        description=claim.description,
        reason=reason,
        member_name=member_name or DEFAULT_MEMBER_NAME,
        member_id=member_id,
        submission_date=submission_date.isoformat(),
    )


def submission_notice(claim: Claim, response_window_days: int = 30) -> str:
    """Confirmation shown to the member once the appeal has been handed off."""
    return (
        f"Your appeal for claim {claim.id} has been submitted. "
        f"You will receive a response within {response_window_days} days."
    )


class AppealDraft(BaseModel):
    """An appeal being composed. The letter is derived on demand, never stored."""

    model_config = ConfigDict(frozen=True)

    claim: Claim
    reason: str = ""

    def with_reason(self, reason: str) -> "AppealDraft":
        return self.model_copy(update={"reason": reason})

    def to_appeal(self) -> Appeal:
        reason = self.reason.strip()
        if not reason:
            raise EmptyAppealReason()
        return Appeal(claim_id=self.claim.id, reason=reason)

    def letter(self, member_id: str, submission_date: date, member_name: str | None = None) -> str:
        return compose_letter(self.claim, self.reason, member_id, submission_date, member_name)

    def submit(self) -> Claim:
        """Return the appealed claim. Committing it is the caller's job."""
        return claims_ledger.appeal(self.claim, self.reason)
