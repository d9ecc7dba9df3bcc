"""
Error hierarchy for the navigator core.

Validation failures are raised synchronously before any derived value is produced.
Coverage service failures travel inside a Result so they can never be mistaken
for a negative coverage determination.
"""

from claritycare.domain.models import ClaimStatus


class NavigatorError(Exception):
    """Base class for every error raised by the navigator core."""


class ValidationFailure(NavigatorError, ValueError):
    """A required input was missing or invalid."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class InvalidInput(ValidationFailure):
    """A numeric or structural input is outside its allowed range."""


class EmptyReason(ValidationFailure):
    """The appeal reason is blank after trimming."""

    def __init__(
        self, field: str = "reason", message: str = "Please provide a reason for the appeal"
    ) -> None:
        super().__init__(field, message)


class EmptyAppealReason(EmptyReason):
    """An appeal was attempted without a reason."""


class EmptyQuery(ValidationFailure):
    """The coverage query is blank after trimming."""

    def __init__(
        self, field: str = "query", message: str = "Please enter symptoms or diagnosis"
    ) -> None:
        super().__init__(field, message)


class InvalidTransition(NavigatorError):
    """A claim status change that the ledger does not permit."""

    def __init__(self, current: ClaimStatus, target: ClaimStatus) -> None:
        super().__init__(f"Cannot move claim from {current.value} to {target.value}")
        self.current = current
        self.target = target


class CoverageServiceError(NavigatorError):
    """The coverage service could not produce a determination."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
