"""Transaction query service: read paths over persisted ledger entries."""

import logging
from datetime import date
from typing import Optional

from dealerledger.database.base import TRANSACTIONS, DocumentStore, Filters
from dealerledger.database.mappers import entry_to_domain
from dealerledger.domain.entities import LedgerEntry, RelatedRef, TransactionKind
from dealerledger.domain.errors import DomainError, LoadError, ValidationError

logger = logging.getLogger(__name__)


def _within(
    entries: list[LedgerEntry], start_date: Optional[date], end_date: Optional[date]
) -> list[LedgerEntry]:
    return [
        e
        for e in entries
        if (start_date is None or e.date >= start_date) and (end_date is None or e.date <= end_date)
    ]


def _check_window(start_date: Optional[date], end_date: Optional[date], limit: Optional[int]) -> None:
    if start_date is not None and end_date is not None and start_date > end_date:
        raise ValidationError(f"Start date {start_date} is after end date {end_date}")
    if limit is not None and limit < 1:
        raise ValidationError(f"Limit must be at least 1, got {limit}")


def order_entries(entries: list[LedgerEntry]) -> list[LedgerEntry]:
    """Order entries newest first: by date, then by creation time."""
    return sorted(entries, key=lambda e: (e.date, e.created_at), reverse=True)


class TransactionQueryService:
    """Service for reading ledger history on demand."""

    def __init__(self, db: DocumentStore):
        """Initialize transaction query service.

        Args:
            db: Document store instance
        """
        self.db = db

    def _load(self, filters: Optional[Filters]) -> list[LedgerEntry]:
        try:
            documents = self.db.query(TRANSACTIONS, filters=filters)
        except DomainError:
            raise
        except Exception as e:
            logger.error("Failed to load ledger entries for %s: %s", filters, e)
            raise LoadError(e) from e
        return order_entries([entry_to_domain(doc) for doc in documents])

    def history(
        self,
        person_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> list[LedgerEntry]:
        """Return a person's ledger entries, newest first.

        Args:
            person_id: Person ID
            start_date: Only entries dated on or after this day
            end_date: Only entries dated on or before this day
            limit: Keep at most this many of the newest entries

        Returns:
            Ordered entries; empty when the person has none

        Raises:
            ValidationError: If the range is reversed or limit is below 1
            LoadError: If the backing store fails
        """
        _check_window(start_date, end_date, limit)
        entries = _within(self._load({"personRef": person_id}), start_date, end_date)
        return entries[:limit] if limit is not None else entries

    def entries_for_related(self, ref: RelatedRef) -> list[LedgerEntry]:
        """Return entries that reference a purchase, sale or vehicle."""
        return self._load({"relatedRef": str(ref)})

    def entries_by_kind(self, kind: TransactionKind) -> list[LedgerEntry]:
        """Return every entry of one kind."""
        return self._load({"kind": TransactionKind.parse(kind).value})

    def entries_between(self, start_date: date, end_date: date) -> list[LedgerEntry]:
        """Return every person's entries dated within an inclusive range, newest first."""
        _check_window(start_date, end_date, None)
        return _within(self._load(None), start_date, end_date)

    def recent_entries(self, limit: int = 10) -> list[LedgerEntry]:
        """Return the most recently recorded entries across all persons."""
        _check_window(None, None, limit)
        entries = sorted(self._load(None), key=lambda e: e.created_at, reverse=True)
        return entries[:limit]
