"""
Benefit usage derivation.

Turns raw BenefitProgress records into percentages, status bands and
display-ready snapshots. Every function here is pure.
"""

import math
from collections.abc import Iterable

from claritycare.domain.errors import InvalidInput
from claritycare.domain.models import BenefitProgress, BenefitSnapshot, BenefitStatus, StatusDisplay

CRITICAL_THRESHOLD = 90.0
WARNING_THRESHOLD = 75.0
LIMIT_THRESHOLD = 100.0

LIMIT_REACHED_MESSAGE = "Limit reached!"
APPROACHING_LIMIT_MESSAGE = "Approaching limit"

BENEFIT_STATUS_DISPLAY: dict[BenefitStatus, StatusDisplay] = {
    BenefitStatus.OK: StatusDisplay(
        color_tag="#4CAF50", icon_tag="checkmark.circle.fill", label="On track"
    ),
    BenefitStatus.WARNING: StatusDisplay(
        color_tag="#FF9800", icon_tag="exclamationmark.circle.fill", label="Watch usage"
    ),
    BenefitStatus.CRITICAL: StatusDisplay(
        color_tag="#F44336", icon_tag="exclamationmark.triangle.fill", label="Near limit"
    ),
}


def raw_usage_percentage(used: float, total: float) -> float:
    """Unclamped usage ratio in percent; may exceed 100 for over-utilized benefits."""
    if not math.isfinite(total):
        raise InvalidInput("total", f"Benefit total must be a finite number, got {total}")
    if not math.isfinite(used):
        raise InvalidInput("used", f"Benefit usage must be a finite number, got {used}")
    if total <= 0:
        raise InvalidInput("total", f"Benefit total must be positive, got {total}")
    if used < 0:
        raise InvalidInput("used", f"Benefit usage cannot be negative, got {used}")
    return used / total * 100


def usage_percentage(used: float, total: float) -> float:
    """Usage ratio in percent, clamped to [0, 100]."""
    return min(raw_usage_percentage(used, total), LIMIT_THRESHOLD)


def status_for_percentage(percentage: float) -> BenefitStatus:
    # lower bound of each band is inclusive
    if percentage >= CRITICAL_THRESHOLD:
        return BenefitStatus.CRITICAL
    if percentage >= WARNING_THRESHOLD:
        return BenefitStatus.WARNING
    return BenefitStatus.OK


def is_limit_reached(percentage: float) -> bool:
    return percentage >= LIMIT_THRESHOLD


def limit_message(percentage: float) -> str | None:
    """Warning text for the critical band, or None when no warning applies."""
    if is_limit_reached(percentage):
        return LIMIT_REACHED_MESSAGE
    if status_for_percentage(percentage) == BenefitStatus.CRITICAL:
        return APPROACHING_LIMIT_MESSAGE
    return None


def _format_quantity(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


def format_usage(benefit: BenefitProgress) -> str:
    """Human readable usage, e.g. '$1600 / $2000' or '3 / 12 visits'."""
    used = _format_quantity(benefit.used)
    total = _format_quantity(benefit.total)
    if benefit.is_currency:
        return f"${used} / ${total}"
    return f"{used} / {total} {benefit.unit}"


def track_benefit(benefit: BenefitProgress) -> BenefitSnapshot:
    """Derive the full display state for one benefit."""
    raw = raw_usage_percentage(benefit.used, benefit.total)
    percentage = min(raw, LIMIT_THRESHOLD)
    status = status_for_percentage(percentage)

    return BenefitSnapshot(
        benefit=benefit,
        percentage=percentage,
        raw_percentage=raw,
        status=status,
        limit_reached=is_limit_reached(percentage),
        display=BENEFIT_STATUS_DISPLAY[status],
        usage_label=format_usage(benefit),
        limit_message=limit_message(percentage),
    )


def track_benefits(benefits: Iterable[BenefitProgress]) -> list[BenefitSnapshot]:
    return [track_benefit(benefit) for benefit in benefits]
