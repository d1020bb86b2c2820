"""Money transfers between persons and dealer capital."""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from dealerledger.config import LedgerConfig
from dealerledger.database.base import TRANSACTIONS, DocumentStore
from dealerledger.domain.capital import CapitalService
from dealerledger.domain.entities import (
    CapitalSource,
    CapitalTransaction,
    LedgerEntry,
    PaymentMethod,
    RelatedRef,
    TransactionKind,
)
from dealerledger.domain.errors import (
    InvalidAmountError,
    ValidationError,
    amount_not_positive,
    amount_not_whole,
)
from dealerledger.domain.ledger import LedgerService, create_entry
from dealerledger.domain.payment_split import is_whole, single_method_split
from dealerledger.domain.person import PersonService

logger = logging.getLogger(__name__)

# Credit is not money on hand, so it cannot be moved
TRANSFER_SOURCES = (CapitalSource.CASH, CapitalSource.BANK)


def _check_amount(amount: Decimal) -> None:
    if amount <= 0:
        raise InvalidAmountError(amount_not_positive(amount))
    if not is_whole(amount):
        raise InvalidAmountError(amount_not_whole(amount))


def _transfer_source(source) -> CapitalSource:
    source = CapitalSource.parse(source)
    if source not in TRANSFER_SOURCES:
        raise ValidationError(f"Transfers use CASH or BANK capital, not {source.value}")
    return source


class TransferService:
    """Service for moving money between persons, cash and bank.

    A transfer that involves a person posts one ledger entry against that
    person plus the matching capital movement, so it shows in their history
    and can be cancelled like any other entry. A transfer between cash and
    bank only moves capital and is recorded as a pair of movements.
    """

    def __init__(self, db: DocumentStore, config: Optional[LedgerConfig] = None):
        """Initialize transfer service.

        Args:
            db: Document store instance
            config: Optional configuration (write retry budget)
        """
        self.db = db
        self.config = config or LedgerConfig()
        self.persons = PersonService(db, self.config)
        self.ledger = LedgerService(db, self.config)
        self.capital = CapitalService(db)

    def _person_transfer(
        self,
        kind: TransactionKind,
        person_id: str,
        source: CapitalSource,
        amount: Decimal,
        transfer_date: Optional[date],
        description: str,
        transfer_id: Optional[str],
    ) -> LedgerEntry:
        person = self.persons.require_person(person_id)
        split = single_method_split(PaymentMethod.parse(source.value), amount)
        entry = create_entry(
            kind=kind,
            person_id=person.id,
            person_type=person.person_type,
            amount=amount,
            split=split,
            entry_date=transfer_date,
            description=description.format(name=person.name, source=source.value),
            entry_id=transfer_id or uuid.uuid4().hex,
        )
        entry = self.ledger.post(entry)
        self.capital.record_split(
            split,
            outflow=kind is TransactionKind.PURCHASE,
            id_prefix=entry.id,
            transaction_date=entry.date,
            reference=RelatedRef(TRANSACTIONS, entry.id),
        )
        return entry

    def to_capital(
        self,
        person_id: str,
        source: CapitalSource,
        amount: Decimal,
        transfer_date: Optional[date] = None,
        description: str = "Transfer from {name} to {source}",
        transfer_id: Optional[str] = None,
    ) -> LedgerEntry:
        """Take money from a person into cash or bank capital.

        Recorded as money received: a SALE entry against the person and a
        capital inflow.

        Args:
            person_id: Person handing over the money
            source: CASH or BANK
            amount: Amount in whole units
            transfer_date: Date of the transfer (defaults to today)
            description: Entry description; ``{name}`` and ``{source}`` are
                filled in
            transfer_id: ID of the ledger entry (generated if not provided)

        Returns:
            The posted ledger entry

        Raises:
            NotFoundError: If the person does not exist
            ValidationError: If the source is not CASH or BANK
            InvalidAmountError: If the amount is not positive or not whole
        """
        source = _transfer_source(source)
        _check_amount(amount)
        entry = self._person_transfer(
            TransactionKind.SALE, person_id, source, amount, transfer_date, description, transfer_id
        )
        logger.info("Transferred %s from person %s to %s", amount, person_id, source.value)
        return entry

    def from_capital(
        self,
        source: CapitalSource,
        person_id: str,
        amount: Decimal,
        transfer_date: Optional[date] = None,
        description: str = "Transfer from {source} to {name}",
        transfer_id: Optional[str] = None,
    ) -> LedgerEntry:
        """Pay money out of cash or bank capital to a person.

        Recorded as money paid: a PURCHASE entry against the person and a
        capital outflow. Arguments mirror ``to_capital``.
        """
        source = _transfer_source(source)
        _check_amount(amount)
        entry = self._person_transfer(
            TransactionKind.PURCHASE, person_id, source, amount, transfer_date, description, transfer_id
        )
        logger.info("Transferred %s from %s to person %s", amount, source.value, person_id)
        return entry

    def between_sources(
        self,
        from_source: CapitalSource,
        to_source: CapitalSource,
        amount: Decimal,
        transfer_date: Optional[date] = None,
        transfer_id: Optional[str] = None,
    ) -> tuple[CapitalTransaction, CapitalTransaction]:
        """Move money between cash and bank.

        Writes an outflow ``{id}-out`` and an inflow ``{id}-in``; repeating
        the call with the same ``transfer_id`` records nothing new.

        Returns:
            The (outflow, inflow) pair

        Raises:
            ValidationError: If a source is not CASH or BANK, or both are the same
            InvalidAmountError: If the amount is not positive or not whole
        """
        from_source = _transfer_source(from_source)
        to_source = _transfer_source(to_source)
        if from_source is to_source:
            raise ValidationError(f"Cannot transfer from {from_source.value} to itself")
        _check_amount(amount)
        transfer_id = transfer_id or uuid.uuid4().hex

        outflow = self.capital.record(
            source=from_source,
            amount=-amount,
            transaction_date=transfer_date,
            transaction_id=f"{transfer_id}-out",
            description=f"Transfer to {to_source.value}",
        )
        inflow = self.capital.record(
            source=to_source,
            amount=amount,
            transaction_date=outflow.transaction_date,
            transaction_id=f"{transfer_id}-in",
            description=f"Transfer from {from_source.value}",
        )
        logger.info("Transferred %s from %s to %s", amount, from_source.value, to_source.value)
        return outflow, inflow
