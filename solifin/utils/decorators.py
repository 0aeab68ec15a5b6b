"""
Decorators - Error handling for CLI commands
"""

import logging
import sys
from functools import wraps
from typing import Callable

from solifin.api.errors import APIError, AuthenticationError, RateLimitError, ValidationError
from solifin.flows.errors import FlowError, FormValidationError

logger = logging.getLogger(__name__)


def handle_api_errors(show_details: bool = False):
    """
    Decorator to handle API and workflow errors consistently across commands

    Catches errors, prints a user-friendly message to stderr and returns
    exit code 1. Logs full error details for debugging.

    Args:
        show_details: Whether to print field-level details to the user

    Usage:
        ```python
        @handle_api_errors()
        async def cmd_balance(api, args):
            balance = await api.get_wallet_balance()
            ...
            return 0
        ```
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)

            except AuthenticationError as e:
                logger.error(f"Authentication error in {func.__name__}: {e}")
                _print_error(e.user_message)
                return 1

            except RateLimitError as e:
                logger.error(f"Rate limit error in {func.__name__}: {e}")
                _print_error(f"Too many requests. Please wait {e.retry_after} seconds.")
                return 1

            except ValidationError as e:
                logger.warning(f"Validation error in {func.__name__}: {e}")
                _print_error(e.user_message)
                if show_details:
                    for field, messages in e.field_errors.items():
                        _print_error(f"  {field}: {', '.join(messages)}")
                return 1

            except APIError as e:
                logger.error(f"API error in {func.__name__}: {e} (status={e.status_code})")
                _print_error(e.user_message)
                return 1

            except FormValidationError as e:
                logger.info(f"Form rejected in {func.__name__}: {e.errors}")
                for field, message in e.errors.items():
                    _print_error(f"{field}: {message}" if show_details else message)
                return 1

            except FlowError as e:
                logger.warning(f"Flow error in {func.__name__}: {e}")
                _print_error(e.user_message)
                return 1

            except ValueError as e:
                logger.warning(f"Invalid input in {func.__name__}: {e}")
                _print_error(str(e))
                return 1

            except Exception as e:
                logger.exception(f"Unexpected error in {func.__name__}: {e}")
                _print_error("An unexpected error occurred. See solifin.log for details.")
                return 1

        return wrapper
    return decorator


def _print_error(message: str):
    print(f"Error: {message}", file=sys.stderr)
