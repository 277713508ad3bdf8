"""
Helper utilities
"""

import random
import string
from typing import Iterable, Optional
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, timezone, timedelta

from storefront.models import CartLineItem


def format_price(amount: Decimal, currency: str = "$") -> str:
    """
    Format amount with a currency symbol and two decimals

    Args:
        amount: Amount to format
        currency: Symbol placed before the amount

    Returns:
        Formatted price string
    """
    quantized = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{currency}{quantized}"

def calculate_delivery_date(
    order_date: datetime,
    business_days: int = 7
) -> datetime:
    """
    Calculate expected delivery date

    Args:
        order_date: Order placement date
        business_days: Working days needed for delivery

    Returns:
        Expected delivery date
    """
    days = business_days

    # Skip weekends
    delivery_date = order_date
    while days > 0:
        delivery_date += timedelta(days=1)
        if delivery_date.weekday() < 5:  # Monday to Friday
            days -= 1

    return delivery_date

def get_total_quantity(items: Iterable[CartLineItem]) -> int:
    """Total units across all line items"""
    return sum(item.quantity for item in items)

def generate_order_number(prefix: str = "NB", now: Optional[datetime] = None) -> str:
    """Generate order number from the last six digits of the epoch milliseconds"""
    now = now or datetime.now(timezone.utc)
    millis = str(int(now.timestamp() * 1000))

    return f"{prefix}-{millis[-6:]}"

def generate_tracking_number(prefix: str = "NB", now: Optional[datetime] = None) -> str:
    """Generate mock carrier tracking number"""
    now = now or datetime.now(timezone.utc)
    millis = str(int(now.timestamp() * 1000))
    random_suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=4))

    return f"{prefix}{millis[-8:]}{random_suffix}"
