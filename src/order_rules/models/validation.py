"""
Validation outcome models.

The validator never raises for a broken business rule. It returns a
ValidationResult: either a success, or the full list of failures, each tagged
with an error code and the field it applies to.
"""

from typing import Annotated, Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

# Field name used for failures that concern the order as a whole
ORDER_LEVEL_FIELD = ''


class ValidationFailure(BaseModel):
    """A single broken rule."""

    code: Annotated[str, Field(
        description='Machine readable error code',
        examples=['CUSTOMER_NOT_FOUND']
    )]

    field: Annotated[str, Field(
        description='Path of the offending field, empty for order-level failures',
        examples=['customer_id', 'lines[0].unit_price']
    )] = ORDER_LEVEL_FIELD

    message: Annotated[str, Field(
        description='Human-readable error message',
        examples=['Customer does not exist.']
    )]

    attempted_value: Annotated[Optional[Any], Field(
        description='Value that failed the rule',
        exclude=True
    )] = None


class ValidationResult(BaseModel):
    """Aggregated pass/fail result of validating an order."""

    is_valid: Annotated[bool, Field(description='True when no rule failed')]

    errors: Annotated[list[ValidationFailure], Field(
        default_factory=list,
        description='Every rule failure found'
    )]

    @classmethod
    def success(cls) -> 'ValidationResult':
        return cls(is_valid=True, errors=[])

    @classmethod
    def failure(cls, errors: list[ValidationFailure]) -> 'ValidationResult':
        return cls(is_valid=not errors, errors=list(errors))

    @classmethod
    def from_failures(cls, errors: list[ValidationFailure]) -> 'ValidationResult':
        """Build a success or failure depending on whether any failure was found."""
        return cls.failure(errors) if errors else cls.success()

    def to_error_dictionary(self) -> dict[str, list[str]]:
        """
        Group error messages by field, for API responses.

        Returns:
            Dictionary with field names as keys and their error messages as values
        """
        grouped: dict[str, list[str]] = {}
        for error in self.errors:
            grouped.setdefault(error.field, []).append(error.message)
        return grouped

    def get_errors_as_string(self, separator: str = '; ') -> str:
        """Join every error message into a single string."""
        return separator.join(error.message for error in self.errors)

    def get_error_codes(self) -> list[str]:
        """Distinct, non-empty error codes in the order they were first reported."""
        return list(dict.fromkeys(error.code for error in self.errors if error.code))


def is_valid_guid(value: Optional[str]) -> bool:
    """Check whether a string is a well-formed GUID."""
    return to_guid(value) is not None


def to_guid(value: Optional[str]) -> Optional[UUID]:
    """Convert a string to a UUID, or None when it is not a GUID."""
    if not value:
        return None
    try:
        return UUID(value.strip().strip('{}'))
    except (ValueError, AttributeError, TypeError):
        return None
