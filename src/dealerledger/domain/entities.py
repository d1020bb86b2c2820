"""Domain model entities for dealerledger.

These are pure data classes representing business concepts, independent of
the document layout in the backing store. Enumerations are closed: an unknown
string is rejected when the entity is built, never mapped to a fallback.
"""

from dataclasses import dataclass
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional

from dealerledger.domain.errors import ValidationError, unknown_enum_value


class _ClosedEnum(Enum):
    """Enum whose persisted form is its upper-case string value."""

    @classmethod
    def parse(cls, value):
        """Return the member for ``value``, raising ValidationError if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValidationError(unknown_enum_value(cls.__name__, value)) from None


class PersonType(_ClosedEnum):
    CUSTOMER = "CUSTOMER"
    BROKER = "BROKER"
    MIDDLE_MAN = "MIDDLE_MAN"


class TransactionKind(_ClosedEnum):
    PURCHASE = "PURCHASE"
    SALE = "SALE"
    EMI_PAYMENT = "EMI_PAYMENT"
    BROKER_FEE = "BROKER_FEE"


class PaymentMethod(_ClosedEnum):
    CASH = "CASH"
    BANK = "BANK"
    CREDIT = "CREDIT"
    MIXED = "MIXED"


class TransactionStatus(_ClosedEnum):
    COMPLETED = "COMPLETED"
    PENDING = "PENDING"
    CANCELLED = "CANCELLED"


class SaleType(_ClosedEnum):
    FULL_PAYMENT = "FULL_PAYMENT"
    EMI = "EMI"


class SaleStatus(_ClosedEnum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class EmiFrequency(_ClosedEnum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class EmiState(_ClosedEnum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class CapitalSource(_ClosedEnum):
    CASH = "CASH"
    BANK = "BANK"
    CREDIT = "CREDIT"


@dataclass(frozen=True)
class RelatedRef:
    """Weak reference to another document: collection plus id, never ownership."""

    collection: str
    id: str

    def __str__(self) -> str:
        return f"{self.collection}/{self.id}"

    @classmethod
    def parse(cls, value: str) -> "RelatedRef":
        """Parse a ``collection/id`` string."""
        collection, sep, doc_id = value.partition("/")
        if not sep or not collection or not doc_id:
            raise ValidationError(f"Invalid reference '{value}', expected 'collection/id'")
        return cls(collection=collection, id=doc_id)


@dataclass(frozen=True)
class Person:
    """Customer, broker or middle-man with a signed running balance.

    Negative balance means the dealer owes the person; positive means the
    person owes the dealer.

    ``inflight_entry_ids`` holds entries already folded into the balance
    whose own document does not record that yet; it is empty between writes.
    """

    id: str
    person_type: PersonType
    name: str
    balance: Decimal
    created_at: datetime
    opening_balance: Decimal = Decimal("0")
    phone: str = ""
    address: str = ""
    id_proof_type: str = ""
    id_proof_number: str = ""
    id_proof_image_urls: tuple[str, ...] = ()
    photo_urls: tuple[str, ...] = ()
    inflight_entry_ids: frozenset[str] = frozenset()
    version: int = 0


@dataclass(frozen=True)
class LedgerEntry:
    """One recorded money-movement event tied to a person.

    ``applied_to`` names the documents (``collection/id``) this entry has
    been folded into, such as the owner's balance or an EMI schedule.
    """

    id: str
    kind: TransactionKind
    person_id: str
    person_type: PersonType
    amount: Decimal
    payment_method: PaymentMethod
    cash_amount: Decimal
    bank_amount: Decimal
    credit_amount: Decimal
    date: date
    status: TransactionStatus
    created_at: datetime
    related_ref: Optional[RelatedRef] = None
    order_number: Optional[int] = None
    description: str = ""
    reverses: Optional[str] = None
    applied_to: frozenset[str] = frozenset()

    @property
    def is_reversal(self) -> bool:
        return self.reverses is not None


@dataclass(frozen=True)
class Purchase:
    """Acquisition of a vehicle from a seller."""

    id: str
    seller_id: str
    grand_total: Decimal
    gst_amount: Decimal
    order_number: int
    payment_method: PaymentMethod
    cash_amount: Decimal
    bank_amount: Decimal
    credit_amount: Decimal
    created_at: datetime
    vehicle_ref: Optional[RelatedRef] = None
    broker_id: Optional[str] = None
    broker_fee: Optional[Decimal] = None
    version: int = 0


@dataclass(frozen=True)
class VehicleSale:
    """Disposition of a vehicle to a customer."""

    id: str
    customer_id: str
    sale_type: SaleType
    total_amount: Decimal
    down_payment: Decimal
    status: SaleStatus
    sale_date: date
    created_at: datetime
    vehicle_ref: Optional[RelatedRef] = None
    emi_details_ref: Optional[str] = None
    version: int = 0

    @property
    def emi(self) -> bool:
        return self.sale_type is SaleType.EMI


@dataclass(frozen=True)
class EmiDetails:
    """Installment schedule owned by a single vehicle sale.

    ``pending_extra_balance`` is positive when credit is carried toward the
    next installment and negative when the current installment is partly
    paid (the magnitude is what is still due on it).
    """

    vehicle_sale_ref: str
    interest_rate: Decimal
    frequency: EmiFrequency
    installments_count: int
    installment_amount: Decimal
    price_with_interest: Decimal
    next_due_date: date
    remaining_installments: int
    paid_installments: int = 0
    pending_extra_balance: Decimal = Decimal("0")
    last_paid_date: Optional[date] = None
    inflight_payment_ids: frozenset[str] = frozenset()
    version: int = 0


@dataclass(frozen=True)
class CapitalTransaction:
    """Dealer-capital audit record; negative amount is an outflow."""

    id: str
    source: CapitalSource
    amount: Decimal
    transaction_date: date
    created_at: datetime
    reference: Optional[RelatedRef] = None
    order_number: int = 0
    description: str = ""


@dataclass(frozen=True)
class BalanceCheck:
    """Result of re-deriving a person's balance from their entries."""

    person_id: str
    expected: Decimal
    stored: Decimal

    @property
    def drift(self) -> Decimal:
        return self.stored - self.expected

    @property
    def is_consistent(self) -> bool:
        return self.expected == self.stored
