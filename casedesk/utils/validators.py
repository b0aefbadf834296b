"""
Input validation and sanitization utilities for the Casedesk service.

This module validates intake submissions, client updates and query
parameters. Field problems are collected so a single response can name
every missing or invalid field.
"""

import re
from typing import Any, Dict, List, Optional, Union

from casedesk.models.entities import CASE_TYPES, CLIENT_STATUSES
from casedesk.utils.errors import ValidationError


class InputValidator:
    """Schema-driven input validation and sanitization"""

    # Natural-key fields are rejected, never truncated
    MAX_EMAIL_LENGTH = 254
    MAX_PHONE_LENGTH = 25

    EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
    # Loose E.164: optional "+", no leading zero, 7 to 15 digits in total
    PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{6,14}$")
    PHONE_SEPARATORS = re.compile(r"[\s\-\.\(\)]")

    def __init__(self):
        self.errors: List[Dict[str, Any]] = []

    def reset_errors(self):
        """Reset validation errors"""
        self.errors = []

    def add_error(self, message: str, field: Optional[str] = None, code: Optional[str] = None):
        """Add a validation error"""
        self.errors.append({"message": message, "field": field, "code": code or "VALIDATION_ERROR"})

    def has_errors(self) -> bool:
        """Check if there are validation errors"""
        return len(self.errors) > 0

    def get_errors(self) -> List[Dict[str, Any]]:
        """Get all validation errors"""
        return self.errors.copy()

    def sanitize_string(self, value: Optional[Any], max_length: Optional[int] = None) -> str:
        """Strip surrounding whitespace and truncate to max_length"""
        if value is None:
            return ""

        if not isinstance(value, str):
            value = str(value)

        value = value.strip()

        if max_length and len(value) > max_length:
            value = value[:max_length]

        return value

    def validate_email(self, email: Any, field_name: str = "email", required: bool = True) -> Optional[str]:
        """
        Validate email address

        Args:
            email: Email to validate
            field_name: Name of the field
            required: Whether email is required

        Returns:
            Lower-cased email or None

        Raises:
            ValidationError: If email is invalid
        """
        if not email:
            if required:
                raise ValidationError("Email is required", field_name, "REQUIRED")
            return None

        if not isinstance(email, str):
            raise ValidationError("Email must be a string", field_name, "INVALID_TYPE")

        sanitized = self.sanitize_string(email).lower()

        if len(sanitized) > self.MAX_EMAIL_LENGTH or not self.EMAIL_PATTERN.match(sanitized):
            raise ValidationError("Invalid email format", field_name, "INVALID_FORMAT")

        return sanitized

    def validate_phone(self, phone: Any, field_name: str = "cellPhone", required: bool = False) -> Optional[str]:
        """
        Validate phone number

        Separators (spaces, dashes, dots, parentheses) are accepted and kept;
        only the digits are checked against the E.164-style pattern.

        Raises:
            ValidationError: If phone number is invalid
        """
        if not phone:
            if required:
                raise ValidationError("Phone number is required", field_name, "REQUIRED")
            return None

        if not isinstance(phone, str):
            raise ValidationError("Phone number must be a string", field_name, "INVALID_TYPE")

        sanitized = self.sanitize_string(phone)

        digits = self.PHONE_SEPARATORS.sub("", sanitized)
        if len(sanitized) > self.MAX_PHONE_LENGTH or not self.PHONE_PATTERN.match(digits):
            raise ValidationError("Invalid phone number format", field_name, "INVALID_FORMAT")

        return sanitized

    def validate_pagination(self, limit: Optional[Union[str, int]] = None, max_limit: int = 500) -> Optional[int]:
        """Validate an optional limit query parameter"""
        if limit is None or limit == "":
            return None

        try:
            limit_int = int(limit)
        except (ValueError, TypeError):
            raise ValidationError("Limit must be a valid integer", "limit", "INVALID_TYPE")

        if limit_int < 1:
            raise ValidationError("Limit must be positive", "limit", "INVALID_VALUE")
        if limit_int > max_limit:
            raise ValidationError(f"Limit cannot exceed {max_limit}", "limit", "TOO_LARGE")
        return limit_int

    def _validate_field_by_type(self, value: Any, field: str, rules: Dict[str, Any]) -> Any:
        field_type = rules.get("type", "string")

        if field_type == "email":
            return self.validate_email(value, field, True)
        if field_type == "phone":
            return self.validate_phone(value, field, True)
        if field_type == "number":
            try:
                return float(value)
            except (ValueError, TypeError):
                raise ValidationError(f"{field} must be a number", field, "INVALID_TYPE")

        if not isinstance(value, str):
            raise ValidationError(f"{field} must be a string", field, "INVALID_TYPE")
        sanitized = self.sanitize_string(value, max_length=rules.get("max_length"))

        allowed_values = rules.get("allowed_values")
        if allowed_values and sanitized not in allowed_values:
            raise ValidationError(
                f"Invalid {field} value. Allowed values: {', '.join(allowed_values)}", field, "INVALID_VALUE"
            )
        return sanitized

    @staticmethod
    def _is_blank(value: Any) -> bool:
        return value is None or (isinstance(value, str) and not value.strip())

    def validate_request_data(
        self, data: Dict[str, Any], schema: Dict[str, Dict[str, Any]], partial: bool = False
    ) -> Dict[str, Any]:
        """
        Validate request data against a schema

        Every field is checked before anything is raised. With partial=True
        only the keys present in data are validated and returned.

        Raises:
            ValidationError: listing every missing or invalid field
        """
        self.reset_errors()
        validated: Dict[str, Any] = {}

        for field, rules in schema.items():
            if partial and field not in data:
                continue

            value = data.get(field)
            if self._is_blank(value):
                if rules.get("required", False) and not partial:
                    self.add_error(f"{field} is required", field, "REQUIRED")
                elif partial:
                    validated[field] = None
                continue

            try:
                validated[field] = self._validate_field_by_type(value, field, rules)
            except ValidationError as e:
                self.add_error(e.message, field, e.reason)

        if self.has_errors():
            raise self._combined_error()

        return validated

    def _combined_error(self) -> ValidationError:
        missing = [e["field"] for e in self.errors if e["code"] == "REQUIRED"]
        invalid = [e["field"] for e in self.errors if e["code"] != "REQUIRED"]

        parts = []
        if missing:
            parts.append(f"Missing required fields: {', '.join(missing)}")
        if invalid:
            parts.append(f"Invalid fields: {', '.join(invalid)}")

        return ValidationError("; ".join(parts), fields=missing + invalid, details=self.get_errors())


INTAKE_SCHEMA = {
    "firstName": {"type": "string", "required": True, "max_length": 100},
    "lastName": {"type": "string", "required": True, "max_length": 100},
    "email": {"type": "email", "required": True},
    "cellPhone": {"type": "phone", "required": True},
    "propertyAddress": {"type": "string", "required": False, "max_length": 500},
    "caseType": {"type": "string", "required": False, "allowed_values": CASE_TYPES},
}

CLIENT_UPDATE_SCHEMA = {
    "email": {"type": "email"},
    "firstName": {"type": "string", "max_length": 100},
    "lastName": {"type": "string", "max_length": 100},
    "cellPhone": {"type": "phone"},
    "propertyAddress": {"type": "string", "max_length": 500},
    "status": {"type": "string", "allowed_values": CLIENT_STATUSES},
}

# Fields that may not be cleared on update
CLIENT_REQUIRED_FIELDS = ("email", "firstName", "lastName", "cellPhone", "status")


def validate_intake_form(form_data: Dict[str, Any]) -> Dict[str, Any]:
    """Validated intake submission; raises ValidationError naming every bad field."""
    if not isinstance(form_data, dict):
        raise ValidationError("Request body must be a JSON object", code="INVALID_TYPE")
    validated = InputValidator().validate_request_data(form_data, INTAKE_SCHEMA)
    return {k: v for k, v in validated.items() if v is not None}


def validate_client_update(form_data: Dict[str, Any]) -> Dict[str, Any]:
    """Validated partial client update; at least one known field is required."""
    if not isinstance(form_data, dict):
        raise ValidationError("Request body must be a JSON object", code="INVALID_TYPE")

    if not any(field in form_data for field in CLIENT_UPDATE_SCHEMA):
        raise ValidationError("At least one field must be provided for update", code="REQUIRED")

    validated = InputValidator().validate_request_data(form_data, CLIENT_UPDATE_SCHEMA, partial=True)

    cleared = [field for field in CLIENT_REQUIRED_FIELDS if field in validated and validated[field] is None]
    if cleared:
        raise ValidationError(f"Fields cannot be empty: {', '.join(cleared)}", fields=cleared)

    return validated
