# File: app/core/exceptions.py

from typing import Dict, Any, List, Optional
from datetime import datetime


class ContactHubException(Exception):
    """Base exception for all ContactHub errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize a ContactHub exception.

        Args:
            message: Human-readable error message
            code: Optional machine-processable error code
            details: Additional error details
        """
        self.message = message
        self.code = code or "GENERIC_ERROR"
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for API responses.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "timestamp": datetime.now().isoformat(),
        }


# Domain-specific exceptions
class DomainException(ContactHubException):
    """Base exception for domain-related errors."""

    CODE_PREFIX = "DOMAIN_"


class EntityNotFoundException(DomainException):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"{entity_type} with ID {entity_id} not found",
            f"{self.CODE_PREFIX}001",
            {"entity_type": entity_type, "entity_id": entity_id},
        )


# Calendar-related exceptions
class CalendarException(ContactHubException):
    """Base exception for calendar and timezone errors."""

    CODE_PREFIX = "CALENDAR_"


class UnknownHolidayException(CalendarException):
    """Raised when a holiday key is not part of the supported set."""

    def __init__(self, key: str):
        super().__init__(
            f"Unknown holiday: {key}",
            f"{self.CODE_PREFIX}001",
            {"holiday_key": key},
        )


class InvalidTimezoneException(CalendarException):
    """Raised when a timezone name is not a valid IANA identifier."""

    def __init__(self, timezone: str):
        super().__init__(
            f"Unknown IANA timezone: {timezone}",
            f"{self.CODE_PREFIX}002",
            {"timezone": timezone},
        )


class InvalidLocalTimeException(CalendarException):
    """Raised when a date or wall-clock string cannot be parsed."""

    def __init__(self, value: str, expected: str):
        super().__init__(
            f"Invalid value '{value}', expected {expected}",
            f"{self.CODE_PREFIX}003",
            {"value": value, "expected": expected},
        )


# Validation exceptions
class ValidationException(ContactHubException):
    """Raised when input validation fails."""

    def __init__(
        self, message: str, validation_errors: Optional[Dict[str, List[str]]] = None
    ):
        super().__init__(
            message, "VALIDATION_001", {"validation_errors": validation_errors or {}}
        )


# Business rule exceptions
class BusinessRuleException(ContactHubException):
    """Raised when a business rule or constraint is violated."""

    CODE_PREFIX = "BUSINESS_"

    def __init__(
        self,
        message: str,
        rule_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if rule_name:
            error_details["rule_name"] = rule_name
        super().__init__(message, f"{self.CODE_PREFIX}001", error_details)


# Integration exceptions
class IntegrationException(ContactHubException):
    """Base exception for integration-related errors."""

    CODE_PREFIX = "INTEGRATION_"


class ExternalServiceException(IntegrationException):
    """Raised when an external service call fails."""

    def __init__(
        self, service_name: str, message: str, original_error: Optional[str] = None
    ):
        details = {"service_name": service_name}
        if original_error:
            details["original_error"] = original_error
        super().__init__(
            f"Error from external service {service_name}: {message}",
            f"{self.CODE_PREFIX}001",
            details,
        )


class DeliveryTimeoutException(IntegrationException):
    """Raised when a group's send step exceeds its send timeout."""

    def __init__(self, group_id: str, timeout_seconds: float):
        super().__init__(
            f"Sending for group {group_id} timed out after {timeout_seconds}s",
            f"{self.CODE_PREFIX}002",
            {"group_id": group_id, "timeout_seconds": timeout_seconds},
        )
