"""Dealer capital audit records."""

import uuid
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Optional

from dealerledger.database.base import CAPITAL_TRANSACTIONS, DocumentStore
from dealerledger.database.mappers import (
    capital_transaction_to_document,
    capital_transaction_to_domain,
)
from dealerledger.domain.concurrency import create_once
from dealerledger.domain.entities import CapitalSource, CapitalTransaction, RelatedRef
from dealerledger.domain.errors import InvalidAmountError, amount_not_whole
from dealerledger.domain.payment_split import PaymentSplit, is_whole


class CapitalService:
    """Service for the read-only capital audit trail."""

    def __init__(self, db: DocumentStore):
        """Initialize capital service.

        Args:
            db: Document store instance
        """
        self.db = db

    def record(
        self,
        source: CapitalSource,
        amount: Decimal,
        transaction_date: Optional[date] = None,
        reference: Optional[RelatedRef] = None,
        order_number: int = 0,
        transaction_id: Optional[str] = None,
        description: str = "",
    ) -> CapitalTransaction:
        """Record a capital movement; recording the same ID twice is a no-op.

        Args:
            source: Cash, bank or credit capital
            amount: Signed amount; negative is an outflow
            transaction_date: Date of the movement (defaults to today)
            reference: Purchase or sale the movement belongs to
            order_number: Order number of the purchase, if any
            transaction_id: ID (generated if not provided)
            description: Free-text note, such as the other side of a transfer

        Returns:
            The stored capital transaction
        """
        if amount == 0:
            raise InvalidAmountError("Capital amount cannot be 0")
        if not is_whole(amount):
            raise InvalidAmountError(amount_not_whole(amount))

        txn = CapitalTransaction(
            id=transaction_id or uuid.uuid4().hex,
            source=CapitalSource.parse(source),
            amount=amount,
            transaction_date=transaction_date or date.today(),
            created_at=datetime.now(UTC),
            reference=reference,
            order_number=order_number,
            description=description,
        )
        if not create_once(self.db, CAPITAL_TRANSACTIONS, txn.id, capital_transaction_to_document(txn)):
            return capital_transaction_to_domain(self.db.get(CAPITAL_TRANSACTIONS, txn.id))
        return txn

    def record_split(
        self,
        split: PaymentSplit,
        outflow: bool,
        id_prefix: str,
        transaction_date: Optional[date] = None,
        reference: Optional[RelatedRef] = None,
        order_number: int = 0,
    ) -> list[CapitalTransaction]:
        """Record one capital movement per non-zero slot of a payment split."""
        recorded = []
        for source, value in (
            (CapitalSource.CASH, split.cash),
            (CapitalSource.BANK, split.bank),
            (CapitalSource.CREDIT, split.credit),
        ):
            if value == 0:
                continue
            recorded.append(
                self.record(
                    source=source,
                    amount=-value if outflow else value,
                    transaction_date=transaction_date,
                    reference=reference,
                    order_number=order_number,
                    transaction_id=f"{id_prefix}-{source.value.lower()}",
                )
            )
        return recorded

    def list_transactions(self, source: Optional[CapitalSource] = None) -> list[CapitalTransaction]:
        """List capital movements newest first, optionally for one source."""
        filters = None
        if source is not None:
            filters = {"source": CapitalSource.parse(source).value}
        documents = self.db.query(
            CAPITAL_TRANSACTIONS,
            filters=filters,
            order=[("transactionDate", True), ("createdAt", True)],
        )
        return [capital_transaction_to_domain(doc) for doc in documents]

    def balance(self, source: CapitalSource) -> Decimal:
        """Sum of all movements for one capital source."""
        return sum((t.amount for t in self.list_transactions(source)), Decimal("0"))

    def get_transaction(self, transaction_id: str) -> Optional[CapitalTransaction]:
        """Get a capital movement by ID, or None if not found."""
        document = self.db.get(CAPITAL_TRANSACTIONS, transaction_id)
        if document is None:
            return None
        return capital_transaction_to_domain(document)

    def reverse_split(
        self,
        id_prefix: str,
        reversal_prefix: str,
        transaction_date: Optional[date] = None,
    ) -> list[CapitalTransaction]:
        """Offset the movements ``record_split`` wrote under ``id_prefix``.

        Each offset is keyed ``{reversal_prefix}-{source}``, so repeating the
        call records nothing new.
        """
        recorded = []
        for source in CapitalSource:
            suffix = source.value.lower()
            original = self.get_transaction(f"{id_prefix}-{suffix}")
            if original is None:
                continue
            recorded.append(
                self.record(
                    source=source,
                    amount=-original.amount,
                    transaction_date=transaction_date,
                    reference=original.reference,
                    order_number=original.order_number,
                    transaction_id=f"{reversal_prefix}-{suffix}",
                    description=f"Reversal of {original.id}",
                )
            )
        return recorded
