"""
Flow Errors - Exceptions raised by the payment workflows
"""

from typing import Dict, Optional


class FlowError(Exception):
    """Base workflow error"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return self.message


class InvalidTransitionError(FlowError):
    """Action not allowed in the flow's current state"""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot go from {current.value} to {target.value}")


class FormValidationError(FlowError):
    """One or more form fields are invalid"""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(self.errors.values()) or "Invalid form")


class InsufficientBalanceError(FlowError):
    """Total to debit exceeds the wallet balance"""
    pass


class FeeScheduleUnavailableError(FlowError):
    """Fee percentages could not be resolved"""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class RecipientLookupError(FlowError):
    """Transfer recipient(s) could not be found"""

    def __init__(self, message: str, missing: Optional[list] = None):
        super().__init__(message)
        self.missing = list(missing or [])
