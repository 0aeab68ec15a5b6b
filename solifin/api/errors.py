"""
API Errors - Custom exception classes for API operations
"""

from typing import Optional, Dict, Any, List


GENERIC_ERROR_MESSAGE = "An error occurred while processing your request"


class APIError(Exception):
    """Base API error"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        """Get user-friendly error message"""
        return self.get_user_message(self.status_code, self.message, self.response_data)

    @staticmethod
    def get_user_message(
        status_code: Optional[int],
        message: str,
        response_data: Dict[str, Any]
    ) -> str:
        """
        Translate API error to user-friendly message

        The dashboard API (Laravel) answers with ``message`` and, on 422,
        an ``errors`` object of field -> [messages].

        Args:
            status_code: HTTP status code
            message: Error message from API
            response_data: Full response data

        Returns:
            User-friendly error message
        """
        detail = response_data.get("message") or response_data.get("detail") or message

        if status_code == 422:
            details = flatten_field_errors(response_data.get("errors"))
            if details:
                return f"{detail} ({', '.join(details)})"
            return detail or "Validation failed. Please check your information."
        elif status_code == 400:
            return f"Invalid input: {detail}"
        elif status_code == 401:
            return "Authentication failed. Please log in again."
        elif status_code == 403:
            return response_data.get("message") or "You don't have permission to perform this action."
        elif status_code == 404:
            return response_data.get("message") or "Resource not found."
        elif status_code == 429:
            retry_after = response_data.get("retry_after", "60")
            return f"Rate limit exceeded. Try again in {retry_after} seconds."
        elif status_code and status_code >= 500:
            return "Server error. Please try again later."
        else:
            return detail or GENERIC_ERROR_MESSAGE


def flatten_field_errors(errors: Any) -> List[str]:
    """Flatten a Laravel ``errors`` object into a list of messages"""
    if not isinstance(errors, dict):
        return []

    flat = []
    for messages in errors.values():
        if isinstance(messages, (list, tuple)):
            flat.extend(str(m) for m in messages)
        elif messages:
            flat.append(str(messages))
    return flat


class AuthenticationError(APIError):
    """Authentication failed"""
    pass


class ForbiddenError(APIError):
    """Insufficient permissions"""
    pass


class NotFoundError(APIError):
    """Resource not found"""
    pass


class RateLimitError(APIError):
    """Rate limit exceeded"""

    def __init__(self, message: str, retry_after: int = 60, **kwargs):
        super().__init__(message, status_code=429, **kwargs)
        self.retry_after = retry_after


class ValidationError(APIError):
    """Input validation failed"""

    @property
    def field_errors(self) -> Dict[str, List[str]]:
        errors = self.response_data.get("errors")
        if not isinstance(errors, dict):
            return {}
        return {
            field: list(messages) if isinstance(messages, (list, tuple)) else [str(messages)]
            for field, messages in errors.items()
        }


class ServerError(APIError):
    """Server-side error"""
    pass


class BusinessError(APIError):
    """Request reached the server but was refused (``success: false``)"""
    pass
