"""Balance aggregation over ledger entries.

Every place that moves a person's balance goes through
``signed_contribution``; there is exactly one sign table.
"""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Optional

from dealerledger.config import LedgerConfig
from dealerledger.database.base import INFLIGHT_ENTRY_IDS, PERSONS, Document, DocumentStore
from dealerledger.database.mappers import person_to_document, person_to_domain
from dealerledger.domain.concurrency import apply_once
from dealerledger.domain.entities import (
    BalanceCheck,
    LedgerEntry,
    Person,
    TransactionKind,
    TransactionStatus,
)
from dealerledger.domain.errors import (
    BalanceDriftError,
    NotFoundError,
    ValidationError,
    person_not_found,
)
from dealerledger.domain.history import TransactionQueryService

logger = logging.getLogger(__name__)

# +1: money flows toward the dealer; -1: money flows toward the person
SIGN_BY_KIND = {
    TransactionKind.SALE: 1,
    TransactionKind.EMI_PAYMENT: 1,
    TransactionKind.PURCHASE: -1,
    TransactionKind.BROKER_FEE: -1,
}


def signed_contribution(entry: LedgerEntry) -> Decimal:
    """Return how much an entry moves its person's balance."""
    if entry.status is TransactionStatus.PENDING:
        return Decimal("0")
    value = entry.amount * SIGN_BY_KIND[entry.kind]
    return -value if entry.is_reversal else value


def fold_balance(opening_balance: Decimal, entries: list[LedgerEntry]) -> Decimal:
    """Fold signed contributions onto an opening balance."""
    return opening_balance + sum((signed_contribution(e) for e in entries), Decimal("0"))


class BalanceAggregator:
    """Keeps Person.balance consistent with applied ledger entries."""

    def __init__(self, db: DocumentStore, config: Optional[LedgerConfig] = None):
        """Initialize balance aggregator.

        Args:
            db: Document store instance
            config: Optional configuration (write retry budget)
        """
        self.db = db
        self.config = config or LedgerConfig()
        self.history = TransactionQueryService(db)

    def apply(self, person_id: str, entry: LedgerEntry) -> Person:
        """Fold one entry into a person's stored balance.

        The entry must already be recorded. Applying an entry that was
        already applied leaves the balance unchanged; see ``apply_once``.

        Args:
            person_id: Person ID
            entry: Ledger entry owned by that person

        Returns:
            Person as stored after the update

        Raises:
            ValidationError: If the entry belongs to another person
            NotFoundError: If the person or the recorded entry does not exist
        """
        if entry.person_id != person_id:
            raise ValidationError(
                f"Ledger entry {entry.id} belongs to person {entry.person_id}, not {person_id}"
            )
        if entry.status is TransactionStatus.PENDING:
            # Left unapplied so it can still be applied once completed
            logger.warning("Skipping pending ledger entry %s for person %s", entry.id, person_id)
            document = self.db.get(PERSONS, person_id)
            if document is None:
                raise NotFoundError(person_not_found(person_id))
            return person_to_domain(document)

        def mutate(document: Document):
            person = person_to_domain(document)
            return person_to_document(
                replace(person, balance=person.balance + signed_contribution(entry))
            )

        document = apply_once(
            self.db,
            PERSONS,
            person_id,
            entry.id,
            INFLIGHT_ENTRY_IDS,
            mutate,
            max_retries=self.config.max_write_retries,
            not_found_message=person_not_found(person_id),
        )
        return person_to_domain(document)

    def recompute(self, person_id: str) -> BalanceCheck:
        """Re-derive a person's balance from all of their entries.

        Returns:
            BalanceCheck with the derived and the stored balance

        Raises:
            NotFoundError: If the person does not exist
            LoadError: If the entries cannot be read
        """
        document = self.db.get(PERSONS, person_id)
        if document is None:
            raise NotFoundError(person_not_found(person_id))
        person = person_to_domain(document)
        expected = fold_balance(person.opening_balance, self.history.history(person_id))
        return BalanceCheck(person_id=person_id, expected=expected, stored=person.balance)

    def verify(self, person_id: str) -> BalanceCheck:
        """Recompute and raise if the stored balance has drifted.

        Drift is reported, never corrected.

        Raises:
            BalanceDriftError: If the stored balance disagrees with the entries
        """
        check = self.recompute(person_id)
        if not check.is_consistent:
            logger.error(
                "Balance drift for person %s: expected %s, stored %s",
                person_id,
                check.expected,
                check.stored,
            )
            raise BalanceDriftError(person_id, check.expected, check.stored)
        return check
