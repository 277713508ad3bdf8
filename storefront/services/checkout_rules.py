"""Standard validation rule sets for the checkout forms"""

from datetime import date
from typing import Callable, Dict, Optional

from storefront.services.validation import FieldRule
from storefront.utils import validators

SHIPPING_FIELDS = (
    "full_name",
    "phone",
    "street_address",
    "city",
    "postal_code",
    "country",
)

PAYMENT_FIELDS = (
    "cardholder_name",
    "card_number",
    "expiry_date",
    "cvv",
)

def as_rule(check: Callable[[str], str]) -> Callable[[str], Optional[str]]:
    """Adapt a raising validator to a custom rule returning a message"""
    def rule(value: str) -> Optional[str]:
        try:
            check(value)
        except ValueError as e:
            return str(e)
        return None
    return rule

def shipping_rules() -> Dict[str, FieldRule]:
    return {
        "full_name": FieldRule(
            required=True,
            min_length=2,
            custom=as_rule(validators.validate_person_name),
        ),
        "phone": FieldRule(
            required=True,
            custom=as_rule(validators.validate_phone_number),
        ),
        "street_address": FieldRule(
            required=True,
            min_length=5,
            custom=as_rule(validators.validate_street_address),
        ),
        "city": FieldRule(
            required=True,
            max_length=50,
            custom=as_rule(validators.validate_city),
        ),
        "postal_code": FieldRule(
            required=True,
            pattern=validators.POSTAL_CODE_PATTERN,
            custom=as_rule(validators.validate_postal_code),
        ),
        "country": FieldRule(
            required=True,
            max_length=50,
            custom=as_rule(validators.validate_country),
        ),
    }

def payment_rules(today: Optional[Callable[[], date]] = None) -> Dict[str, FieldRule]:
    """Card form rules; `today` pins the date used for expiry checks"""
    def check_expiry(value: str) -> str:
        return validators.validate_expiry_date(value, today() if today else None)

    return {
        "cardholder_name": FieldRule(
            required=True,
            min_length=2,
            custom=as_rule(
                lambda value: validators.validate_person_name(value, label="cardholder name")
            ),
        ),
        "card_number": FieldRule(
            required=True,
            custom=as_rule(validators.validate_card_number),
        ),
        "expiry_date": FieldRule(
            required=True,
            pattern=validators.EXPIRY_PATTERN,
            custom=as_rule(check_expiry),
        ),
        "cvv": FieldRule(
            required=True,
            pattern=validators.CVV_PATTERN,
            custom=as_rule(validators.validate_cvv),
        ),
    }
