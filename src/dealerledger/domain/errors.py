"""Shared domain error messages and error types."""

from decimal import Decimal
from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class InvalidAmountError(ValidationError):
    """Amount is zero, negative, or not a whole number of currency units."""


class SplitMismatchError(ValidationError):
    """Payment split does not reconcile to the stated total."""

    def __init__(self, expected: Decimal, actual: Decimal):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Payment split mismatch: expected {expected}, got {actual}")


class ScheduleAlreadyCompleteError(ValidationError):
    """Payment applied to an installment schedule with nothing remaining."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as a duplicate id or a repeated cancellation."""


class VersionConflictError(ConflictError):
    """Compare-and-set write lost against a concurrent writer."""

    def __init__(self, collection: str, doc_id: str, expected: Optional[int], actual: Optional[int]):
        self.collection = collection
        self.doc_id = doc_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Version conflict on {collection}/{doc_id}: expected {expected}, found {actual}"
        )


class BalanceDriftError(DomainError):
    """Stored balance disagrees with the fold of the person's ledger entries."""

    def __init__(self, person_id: str, expected: Decimal, stored: Decimal):
        self.person_id = person_id
        self.expected = expected
        self.stored = stored
        super().__init__(
            f"Balance drift for person {person_id}: expected {expected}, stored {stored}"
        )


class StoreError(DomainError):
    """Backing store rejected or failed a write."""


class LoadError(DomainError):
    """Backing store failed while reading."""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Failed to load from store: {cause}")


def person_not_found(person_id: str) -> str:
    """Return message for missing person."""
    return f"Person {person_id} not found"


def sale_not_found(sale_id: str) -> str:
    """Return message for missing vehicle sale."""
    return f"Sale {sale_id} not found"


def entry_not_found(entry_id: str) -> str:
    """Return message for missing ledger entry."""
    return f"Ledger entry {entry_id} not found"


def purchase_not_found(purchase_id: str) -> str:
    """Return message for missing purchase."""
    return f"Purchase {purchase_id} not found"


def amount_not_positive(amount: Decimal) -> str:
    """Return message for a non-positive money amount."""
    return f"Amount must be greater than 0, got {amount}"


def amount_not_whole(amount: Decimal) -> str:
    """Return message for an amount with a fractional part."""
    return f"Amount must be a whole number of currency units, got {amount}"


def unknown_enum_value(enum_name: str, value: object) -> str:
    """Return message for a string that is not a member of a closed enumeration."""
    return f"Unknown {enum_name} '{value}'"


def schedule_not_found(sale_id: str) -> str:
    """Return message for a sale whose EMI schedule is missing."""
    return f"EMI schedule for sale {sale_id} not found"
