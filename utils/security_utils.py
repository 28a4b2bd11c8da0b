"""
Security utilities for account input validation
"""
import re

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

# E.164-ish: optional +, 7 to 15 digits, common separators allowed
PHONE_PATTERN = re.compile(r'^\+?[0-9][0-9\s\-().]{5,18}[0-9]$')

MIN_PASSWORD_LENGTH = 8
MIN_NAME_LENGTH = 2


def validate_email(email: str) -> bool:
    """Validate email format"""
    return bool(email) and EMAIL_PATTERN.match(email.strip()) is not None


def validate_phone(phone: str) -> bool:
    """Validate phone number format (7 to 15 digits)"""
    if not phone or not PHONE_PATTERN.match(phone.strip()):
        return False
    digits = re.sub(r'\D', '', phone)
    return 7 <= len(digits) <= 15


def validate_name(value: str, field: str) -> str:
    """
    Strip a person's name and enforce the minimum length.

    Raises:
        ValueError: If the stripped name is shorter than MIN_NAME_LENGTH
    """
    value = (value or "").strip()
    if len(value) < MIN_NAME_LENGTH:
        raise ValueError(f"{field} must be at least {MIN_NAME_LENGTH} characters")
    return value


def validate_password_strength(password: str) -> None:
    """
    Validate password strength according to security requirements.

    Enforces:
    - Minimum length: 8 characters
    - At least one uppercase letter (A-Z)
    - At least one lowercase letter (a-z)
    - At least one digit (0-9)
    - At least one special character (!@#$%^&*(),.?":{}|<>])

    Args:
        password: Password string to validate

    Raises:
        ValueError: If password does not meet strength requirements
    """
    if not password:
        raise ValueError("Password cannot be empty")

    # Check minimum length
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    # Check for uppercase letter
    if not re.search(r'[A-Z]', password):
        raise ValueError("Password must contain at least one uppercase letter (A-Z)")

    # Check for lowercase letter
    if not re.search(r'[a-z]', password):
        raise ValueError("Password must contain at least one lowercase letter (a-z)")

    # Check for digit
    if not re.search(r'[0-9]', password):
        raise ValueError("Password must contain at least one digit (0-9)")

    # Check for special character
    if not re.search(r'[!@#$%&*(),.?":{}|<>\[\]^]', password):
        raise ValueError("Password must contain at least one special character (!@#$%^&*(),.?\":{}|<>[])")
