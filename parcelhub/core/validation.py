"""
Input Validation Utilities

Provides validation for user inputs including:
- Phone number validation (Indonesian and international formats)
- Address and name checks
- Text sanitization for injection prevention
- Money and measurement parsing into Decimal
"""
import re
import html
from decimal import Decimal, InvalidOperation
from typing import Any


class ValidationPatterns:
    """Regex patterns for validation"""

    # Indonesian numbers: 08XX-XXXX-XXXX or +62 8XX XXXX XXXX
    PHONE_INDONESIA = re.compile(r"^(?:\+62|62|0)8\d{7,11}$")

    # International phone (E.164 format)
    PHONE_INTERNATIONAL = re.compile(r"^\+[1-9]\d{6,14}$")

    # Letters in any script, spaces and a little punctuation
    NAME = re.compile(r"^[^\W\d_][\w\s\-\'\.,]{1,99}$", re.UNICODE)

    # Injection patterns checked on free-text fields
    SQL_INJECTION_PATTERNS = [
        re.compile(r"--\s*$|/\*|\*/", re.IGNORECASE),
        re.compile(r"['\"]\s*(OR|AND)\s+['\"]?\w*['\"]?\s*=", re.IGNORECASE),
        re.compile(r";\s*(SELECT|INSERT|UPDATE|DELETE|DROP|ALTER|CREATE|TRUNCATE)\b", re.IGNORECASE),
        re.compile(r"\bUNION\s+(ALL\s+)?SELECT\b", re.IGNORECASE),
    ]

    XSS_PATTERNS = [
        re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL),
        re.compile(r"javascript:", re.IGNORECASE),
        re.compile(r"\bon\w+=", re.IGNORECASE),
        re.compile(r"<iframe", re.IGNORECASE),
    ]


class PhoneNumberValidator:
    """Phone number validation and normalization"""

    @staticmethod
    def validate(phone: str, allow_international: bool = True) -> bool:
        if not phone:
            return False

        cleaned = re.sub(r"[\s\-\(\)]", "", phone)

        if ValidationPatterns.PHONE_INDONESIA.match(cleaned):
            return True

        if allow_international and ValidationPatterns.PHONE_INTERNATIONAL.match(cleaned):
            return True

        return False

    @staticmethod
    def normalize(phone: str) -> str:
        """Normalize to E.164; local Indonesian numbers become +62..."""
        cleaned = re.sub(r"[^\d+]", "", phone)

        if cleaned.startswith("0"):
            cleaned = "+62" + cleaned[1:]
        elif cleaned.startswith("62") and not cleaned.startswith("+"):
            cleaned = "+" + cleaned

        return cleaned

    @staticmethod
    def mask(phone: str) -> str:
        """Mask phone number for logging"""
        if len(phone) < 4:
            return "****"
        return phone[:-4] + "****"


class TextSanitizer:
    """Text sanitization for security"""

    @staticmethod
    def sanitize(text: str, max_length: int = 1000) -> str:
        """
        Trim, cap length, drop null bytes and collapse runs of spaces.

        Does NOT HTML escape - use sanitize_for_html() at display time.
        """
        if not text:
            return ""

        sanitized = text.strip()[:max_length]
        sanitized = sanitized.replace("\x00", "")
        return re.sub(r" +", " ", sanitized)

    @staticmethod
    def sanitize_for_html(text: str) -> str:
        if not text:
            return ""
        return html.escape(text)

    @staticmethod
    def check_for_injection(text: str) -> tuple[bool, str | None]:
        """
        Check text for potential injection attacks.

        Returns:
            Tuple of (is_safe, detected_pattern)
        """
        if not text:
            return True, None

        for pattern in ValidationPatterns.SQL_INJECTION_PATTERNS:
            if pattern.search(text):
                return False, "SQL injection pattern detected"

        for pattern in ValidationPatterns.XSS_PATTERNS:
            if pattern.search(text):
                return False, "XSS pattern detected"

        return True, None


class AddressValidator:
    """Address validation utilities"""

    MIN_LENGTH = 5
    MAX_LENGTH = 500

    @staticmethod
    def validate(address: str) -> tuple[bool, str | None]:
        if not address or not address.strip():
            return False, "Address is required"

        address = address.strip()

        if len(address) < AddressValidator.MIN_LENGTH:
            return False, f"Address too short (minimum {AddressValidator.MIN_LENGTH} characters)"

        if len(address) > AddressValidator.MAX_LENGTH:
            return False, f"Address too long (maximum {AddressValidator.MAX_LENGTH} characters)"

        is_safe, pattern = TextSanitizer.check_for_injection(address)
        if not is_safe:
            return False, f"Invalid address: {pattern}"

        return True, None

    @staticmethod
    def normalize(address: str) -> str:
        if not address:
            return ""
        return re.sub(r"\s+", " ", address.strip())


class NameValidator:
    """Name validation utilities"""

    MIN_LENGTH = 2
    MAX_LENGTH = 100

    @staticmethod
    def validate(name: str) -> tuple[bool, str | None]:
        if not name or not name.strip():
            return False, "Name is required"

        name = name.strip()

        if len(name) < NameValidator.MIN_LENGTH:
            return False, f"Name too short (minimum {NameValidator.MIN_LENGTH} characters)"

        if len(name) > NameValidator.MAX_LENGTH:
            return False, f"Name too long (maximum {NameValidator.MAX_LENGTH} characters)"

        if not ValidationPatterns.NAME.match(name):
            return False, "Name contains invalid characters"

        return True, None


class AmountValidator:
    """Monetary amount validation"""

    CENT = Decimal("0.01")

    @staticmethod
    def to_decimal(value: Any) -> Decimal | None:
        """Parse ``value`` into a finite Decimal; floats go through str() to avoid binary noise"""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, float):
            value = str(value)
        try:
            parsed = Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            return None
        if not parsed.is_finite():
            return None
        return parsed

    @staticmethod
    def validate(
        amount: Any,
        min_value: Decimal = Decimal("0.01"),
        max_value: Decimal = Decimal("100000000.00")
    ) -> tuple[bool, str | None]:
        """
        Validate monetary amount.

        Returns:
            Tuple of (is_valid, error_message)
        """
        parsed = AmountValidator.to_decimal(amount)
        if parsed is None:
            return False, "Amount must be a number"

        if parsed < min_value:
            return False, f"Amount must be at least {min_value}"

        if parsed > max_value:
            return False, f"Amount cannot exceed {max_value}"

        if parsed != parsed.quantize(AmountValidator.CENT):
            return False, "Amount cannot have more than 2 decimal places"

        return True, None


# Pydantic field validators for reuse
def phone_validator(v: str | None) -> str | None:
    """Pydantic field validator for phone numbers"""
    if v is None:
        return None
    if not PhoneNumberValidator.validate(v):
        raise ValueError("Invalid phone number format")
    return PhoneNumberValidator.normalize(v)


def address_validator(v: str | None) -> str | None:
    """Pydantic field validator for addresses"""
    if v is None:
        return None
    is_valid, error = AddressValidator.validate(v)
    if not is_valid:
        raise ValueError(error)
    return AddressValidator.normalize(v)


def name_validator(v: str | None) -> str | None:
    """Pydantic field validator for names"""
    if v is None:
        return None
    is_valid, error = NameValidator.validate(v)
    if not is_valid:
        raise ValueError(error)
    return TextSanitizer.sanitize(v.strip(), max_length=NameValidator.MAX_LENGTH)


def sanitized_text_validator(v: str | None, max_length: int = 1000) -> str | None:
    """Pydantic field validator for sanitized text"""
    if v is None:
        return None
    is_safe, pattern = TextSanitizer.check_for_injection(v)
    if not is_safe:
        raise ValueError(f"Invalid input: {pattern}")
    return TextSanitizer.sanitize(v, max_length)
