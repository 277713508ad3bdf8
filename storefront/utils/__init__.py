"""Utilities package"""

from .validators import sanitize_input, validate_email_address, validate_phone_number
from .helpers import format_price, calculate_delivery_date, generate_order_number

__all__ = [
    "sanitize_input",
    "validate_email_address",
    "validate_phone_number",
    "format_price",
    "calculate_delivery_date",
    "generate_order_number",
]
