"""Utils package - Shared utilities"""

from solifin.utils.formatting import *
from solifin.utils.payment_methods import (
    PaymentMethod,
    PAYMENT_METHODS,
    get_payment_method,
    get_methods_for_type,
    format_payment_method_display,
    validate_phone_number,
    format_full_phone_number,
)
