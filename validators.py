import re
from datetime import date, datetime
from typing import Optional

from email_validator import EmailNotValidError, validate_email

from result import Error, ErrorKind

MIN_PASSWORD_LENGTH = 6
PHONE_PATTERN = re.compile(r"^\+?[0-9 \-]{7,20}$")


def _invalid(field: str, message: str) -> Error:
    return Error(ErrorKind.VALIDATION_ERROR, message, field)


def check_name(name: str) -> Optional[Error]:
    if not name.strip():
        return _invalid("name", "Name cannot be empty")
    return None


def check_email(email: str) -> Optional[Error]:
    if not email.strip():
        return _invalid("email", "Email cannot be empty")
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return _invalid("email", "Please enter a valid email")
    return None


def check_password(password: str) -> Optional[Error]:
    if not password.strip():
        return _invalid("password", "Password cannot be empty")
    if len(password) < MIN_PASSWORD_LENGTH:
        return _invalid("password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return None


def check_confirm_password(password: str, confirm_password: str) -> Optional[Error]:
    if not confirm_password.strip():
        return _invalid("confirm_password", "Please repeat the password")
    if password != confirm_password:
        return _invalid("confirm_password", "Passwords do not match")
    return None


def check_phone(phone_number: str) -> Optional[Error]:
    # El teléfono es opcional
    if phone_number and not PHONE_PATTERN.match(phone_number):
        return _invalid("phone_number", "Please enter a valid phone number")
    return None


BIRTH_DATE_FORMAT = "%m.%d.%Y"


def check_required(field: str, value: str, message: str) -> Optional[Error]:
    if not value.strip():
        return _invalid(field, message)
    return None


def parse_birth_date(text: str) -> Optional[date]:
    try:
        return datetime.strptime(text.strip(), BIRTH_DATE_FORMAT).date()
    except ValueError:
        return None


def check_birth_date(text: str) -> Optional[Error]:
    if not text.strip():
        return _invalid("birth_date", "Birth date is required")
    if parse_birth_date(text) is None:
        return _invalid("birth_date", "Enter a valid birth date (MM.DD.YYYY)")
    return None
