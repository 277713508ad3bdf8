"""Custom validators and sanitizers for checkout input"""

import re
from datetime import date
from typing import Optional
import bleach
from email_validator import validate_email, EmailNotValidError

# Saudi phone numbers, digits only
PHONE_PATTERN = re.compile(r"^(00966|966)?5\d{8}$")
LOCAL_PHONE_PATTERN = re.compile(r"^05\d{8}$")

POSTAL_CODE_PATTERN = re.compile(r"^\d{5}$")

# Latin and Arabic letters
NAME_PATTERN = re.compile(r"^[a-zA-Z\s\u0600-\u06FF\-'.]+$")
CITY_PATTERN = re.compile(r"^[a-zA-Z\s\u0600-\u06FF\-']+$")

EXPIRY_PATTERN = re.compile(r"^(0[1-9]|1[0-2])/\d{2}$")
CVV_PATTERN = re.compile(r"^\d{3,4}$")

SQL_INJECTION_PATTERNS = [
    re.compile(r"(\b(SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER|EXEC|UNION|SCRIPT)\b)", re.I),
    re.compile(r"(('|(%27))(\s*(OR|AND)\s+.+\s*=\s*.+))", re.I),
    re.compile(r"((%3D)|(=))[^\n]*((%27)|(')|(%3B)|(;))", re.I),
    re.compile(r"\w*((%27)|('))((%6F)|o|(%4F))((%72)|r|(%52))", re.I),
    re.compile(r"((%27)|('))union", re.I),
    re.compile(r"exec(\s|\+)+(s|x)p\w+", re.I),
]

MIN_ADDRESS_LENGTH = 5
MIN_NAME_LENGTH = 2
MAX_CITY_LENGTH = 50

def sanitize_input(text: str) -> str:
    """Strip all markup from free-text input"""
    return bleach.clean(text, tags=[], attributes={}, strip=True).strip()

def normalize_text(text: str) -> str:
    """Normalize text input"""
    # Remove extra whitespace
    text = " ".join(text.split())

    # Remove zero-width characters
    text = re.sub(r'[\u200b\u200c\u200d\ufeff]', '', text)

    return text.strip()

def contains_sql_injection(text: str) -> bool:
    return any(pattern.search(text) for pattern in SQL_INJECTION_PATTERNS)

def validate_email_address(email: str) -> str:
    """Validate and normalize email"""
    email = email.strip().lower()

    try:
        validation = validate_email(email, check_deliverability=False)
        return validation.normalized
    except EmailNotValidError as e:
        raise ValueError(str(e))

def validate_phone_number(phone: str) -> str:
    """Validate a Saudi mobile number and return its digits"""
    digits = re.sub(r"\D", "", sanitize_input(phone))

    if not digits:
        raise ValueError("Phone number is required")
    if not (PHONE_PATTERN.match(digits) or LOCAL_PHONE_PATTERN.match(digits)):
        raise ValueError("Please enter a valid phone number")

    return digits

def validate_person_name(name: str, label: str = "full name") -> str:
    """Letters, spaces and basic punctuation, at least two characters"""
    name = normalize_text(sanitize_input(name))

    if len(name) < MIN_NAME_LENGTH or not NAME_PATTERN.match(name):
        raise ValueError(f"Please enter a valid {label}")

    return name

def validate_street_address(address: str) -> str:
    address = normalize_text(sanitize_input(address))

    if len(address) < MIN_ADDRESS_LENGTH or contains_sql_injection(address):
        raise ValueError("Please enter a valid street address")

    return address

def validate_city(city: str, label: str = "city name") -> str:
    city = normalize_text(sanitize_input(city))

    if (
        len(city) < MIN_NAME_LENGTH
        or len(city) > MAX_CITY_LENGTH
        or not CITY_PATTERN.match(city)
    ):
        raise ValueError(f"Please enter a valid {label}")

    return city

def validate_country(country: str) -> str:
    return validate_city(country, label="country name")

def validate_postal_code(postal_code: str) -> str:
    postal_code = postal_code.strip()

    if not POSTAL_CODE_PATTERN.match(postal_code):
        raise ValueError("Please enter a valid 5-digit postal code")

    return postal_code

def luhn_checksum_valid(digits: str) -> bool:
    """Luhn check over a string of digits"""
    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0

def validate_card_number(card_number: str) -> str:
    """
    Validate card number

    Spaces and dashes are ignored; 13 to 19 digits passing the Luhn check.
    """
    digits = re.sub(r"[\s-]", "", card_number)

    if (
        not digits.isdigit()
        or not 13 <= len(digits) <= 19
        or not luhn_checksum_valid(digits)
    ):
        raise ValueError("Please enter a valid card number")

    return digits

def validate_expiry_date(expiry: str, today: Optional[date] = None) -> str:
    """
    Validate MM/YY expiry

    A card stays valid through its expiry month.
    """
    expiry = expiry.strip()
    if not EXPIRY_PATTERN.match(expiry):
        raise ValueError("Please enter a valid expiry date (MM/YY)")

    today = today or date.today()
    month, year = (int(part) for part in expiry.split("/"))
    current_year = today.year % 100

    if year < current_year or (year == current_year and month < today.month):
        raise ValueError("Please enter a valid expiry date (MM/YY)")

    return expiry

def validate_cvv(cvv: str) -> str:
    cvv = cvv.strip()
    if not CVV_PATTERN.match(cvv):
        raise ValueError("Please enter a valid CVV (3-4 digits)")
    return cvv
