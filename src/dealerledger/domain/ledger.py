"""Ledger entry construction and posting."""

import logging
import uuid
from dataclasses import replace
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Optional

from dealerledger.config import LedgerConfig
from dealerledger.database.base import TRANSACTIONS, Document, DocumentStore
from dealerledger.database.mappers import entry_to_document, entry_to_domain
from dealerledger.domain.balance import BalanceAggregator
from dealerledger.domain.capital import CapitalService
from dealerledger.domain.concurrency import create_once, update_with_retry
from dealerledger.domain.entities import (
    LedgerEntry,
    PersonType,
    RelatedRef,
    TransactionKind,
    TransactionStatus,
)
from dealerledger.domain.errors import (
    ConflictError,
    InvalidAmountError,
    NotFoundError,
    amount_not_positive,
    amount_not_whole,
    entry_not_found,
)
from dealerledger.domain.payment_split import PaymentSplit, is_whole, validate_split

logger = logging.getLogger(__name__)


def create_entry(
    kind: TransactionKind,
    person_id: str,
    person_type: PersonType,
    amount: Decimal,
    split: PaymentSplit,
    entry_date: Optional[date] = None,
    related_ref: Optional[RelatedRef] = None,
    order_number: Optional[int] = None,
    description: str = "",
    entry_id: Optional[str] = None,
    reverses: Optional[str] = None,
) -> LedgerEntry:
    """Build a validated, COMPLETED ledger entry.

    Args:
        kind: Transaction kind
        person_id: Owning person ID
        person_type: Owning person's type
        amount: Positive amount in whole currency units
        split: Payment split; must reconcile to ``amount``
        entry_date: Transaction date (defaults to today)
        related_ref: Optional reference to the purchase, sale or vehicle
        order_number: Optional order number
        description: Human-readable description
        entry_id: Entry ID (generated if not provided)
        reverses: ID of the entry this one reverses

    Returns:
        New ledger entry

    Raises:
        InvalidAmountError: If amount is not positive or not whole
        SplitMismatchError: If the split does not reconcile to amount
    """
    if amount <= 0:
        raise InvalidAmountError(amount_not_positive(amount))
    if not is_whole(amount):
        raise InvalidAmountError(amount_not_whole(amount))
    validate_split(amount, split.method, split.cash, split.bank, split.credit)

    return LedgerEntry(
        id=entry_id or uuid.uuid4().hex,
        kind=TransactionKind.parse(kind),
        person_id=person_id,
        person_type=PersonType.parse(person_type),
        amount=amount,
        payment_method=split.method,
        cash_amount=split.cash,
        bank_amount=split.bank,
        credit_amount=split.credit,
        date=entry_date or date.today(),
        status=TransactionStatus.COMPLETED,
        created_at=datetime.now(UTC),
        related_ref=related_ref,
        order_number=order_number,
        description=description,
        reverses=reverses,
    )


def _same_event(a: LedgerEntry, b: LedgerEntry) -> bool:
    return (
        a.kind is b.kind
        and a.person_id == b.person_id
        and a.amount == b.amount
        and a.reverses == b.reverses
    )


class LedgerService:
    """Service for recording, posting and cancelling ledger entries."""

    def __init__(self, db: DocumentStore, config: Optional[LedgerConfig] = None):
        """Initialize ledger service.

        Args:
            db: Document store instance
            config: Optional configuration (write retry budget)
        """
        self.db = db
        self.config = config or LedgerConfig()
        self.balances = BalanceAggregator(db, self.config)
        self.capital = CapitalService(db)

    def get_entry(self, entry_id: str) -> Optional[LedgerEntry]:
        """Get ledger entry by ID, or None if not found."""
        document = self.db.get(TRANSACTIONS, entry_id)
        if document is None:
            return None
        return entry_to_domain(document)

    def require_entry(self, entry_id: str) -> LedgerEntry:
        """Get ledger entry by ID.

        Raises:
            NotFoundError: If the entry does not exist
        """
        entry = self.get_entry(entry_id)
        if entry is None:
            raise NotFoundError(entry_not_found(entry_id))
        return entry

    def record(self, entry: LedgerEntry) -> LedgerEntry:
        """Persist an entry once; recording the same id again is a no-op.

        Returns:
            The stored entry

        Raises:
            ConflictError: If a different entry already uses this id
        """
        if create_once(self.db, TRANSACTIONS, entry.id, entry_to_document(entry)):
            return entry

        existing = self.require_entry(entry.id)
        if not _same_event(existing, entry):
            raise ConflictError(f"Ledger entry id '{entry.id}' is already used by a different entry")
        return existing

    def post(self, entry: LedgerEntry) -> LedgerEntry:
        """Record an entry and fold it into its person's balance.

        Returns:
            The entry as stored after it was applied
        """
        stored = self.record(entry)
        self.balances.apply(stored.person_id, stored)
        stored = self.require_entry(stored.id)
        logger.info(
            "Posted %s entry %s of %s for person %s",
            stored.kind.value,
            stored.id,
            stored.amount,
            stored.person_id,
        )
        return stored

    def cancel(self, entry_id: str, cancel_date: Optional[date] = None) -> LedgerEntry:
        """Cancel an entry by posting a reversing entry and marking the original.

        History is never rewritten: the original stays in place with status
        CANCELLED, the reversal offsets its balance contribution and any
        capital movements recorded for it are offset too. Repeating the call
        returns the same reversal.

        EMI payments also move their sale's schedule, so they are cancelled
        through ``SaleService.cancel_emi_payment``.

        Args:
            entry_id: ID of the entry to cancel
            cancel_date: Date of the reversal (defaults to today)

        Returns:
            The reversing entry

        Raises:
            NotFoundError: If the entry does not exist
            ConflictError: If the entry is itself a reversal, is pending, or is
                an EMI payment
        """
        original = self.require_entry(entry_id)
        if original.kind is TransactionKind.EMI_PAYMENT and not original.is_reversal:
            raise ConflictError(
                f"Ledger entry {entry_id} is an EMI payment; cancel it through its sale "
                "so the installment schedule is rebuilt"
            )
        return self.reverse(original, cancel_date)

    def reverse(self, original: LedgerEntry, cancel_date: Optional[date] = None) -> LedgerEntry:
        """Post the reversal of an entry, offset its capital and mark it CANCELLED.

        Raises:
            ConflictError: If the entry is itself a reversal or is pending
        """
        if original.is_reversal:
            raise ConflictError(f"Ledger entry {original.id} is a reversal and cannot be cancelled")
        if original.status is TransactionStatus.PENDING:
            raise ConflictError(f"Ledger entry {original.id} is pending and was never applied")

        reversal = create_entry(
            kind=original.kind,
            person_id=original.person_id,
            person_type=original.person_type,
            amount=original.amount,
            split=PaymentSplit(
                method=original.payment_method,
                cash=original.cash_amount,
                bank=original.bank_amount,
                credit=original.credit_amount,
            ),
            entry_date=cancel_date,
            related_ref=original.related_ref,
            order_number=original.order_number,
            description=f"Reversal of {original.id}",
            entry_id=f"{original.id}-reversal",
            reverses=original.id,
        )
        reversal = self.post(reversal)
        self.capital.reverse_split(original.id, reversal.id, transaction_date=reversal.date)

        def mark_cancelled(document: Document):
            entry = entry_to_domain(document)
            if entry.status is TransactionStatus.CANCELLED:
                return None
            return entry_to_document(replace(entry, status=TransactionStatus.CANCELLED))

        update_with_retry(
            self.db,
            TRANSACTIONS,
            original.id,
            mark_cancelled,
            max_retries=self.config.max_write_retries,
            not_found_message=entry_not_found(original.id),
        )
        logger.info("Cancelled ledger entry %s with reversal %s", original.id, reversal.id)
        return reversal
