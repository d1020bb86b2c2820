"""Abstract document store interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

# Collection names shared by the mappers and the domain services
PERSONS = "persons"
TRANSACTIONS = "transactions"
SALES = "sales"
EMI_DETAILS = "emi_details"
PURCHASES = "purchases"
CAPITAL_TRANSACTIONS = "capital_transactions"
COUNTERS = "counters"
VEHICLES = "vehicles"

# Fields that record which ledger entries a document has absorbed
APPLIED_TO = "appliedTo"
INFLIGHT_ENTRY_IDS = "inFlightEntryIds"
INFLIGHT_PAYMENT_IDS = "inFlightPaymentIds"

Filters = dict[str, Any]
# (field, descending) pairs, most significant first
Order = Sequence[tuple[str, bool]]


@dataclass(frozen=True)
class Document:
    """A stored document and the version it was read at."""

    collection: str
    id: str
    data: dict[str, Any]
    version: int


class Subscription:
    """Handle for a live change stream registered with ``subscribe``."""

    def __init__(
        self,
        store: "DocumentStore",
        collection: str,
        filters: Optional[Filters],
        callback: Callable[[Document], None],
    ):
        self.store = store
        self.collection = collection
        self.filters = filters or {}
        self.callback = callback
        self.active = True

    def wants(self, document: Document) -> bool:
        return (
            self.active
            and document.collection == self.collection
            and matches(document.data, self.filters)
        )

    def cancel(self) -> None:
        """Stop receiving documents."""
        self.active = False
        self.store.unsubscribe(self)


def matches(data: dict[str, Any], filters: Optional[Filters]) -> bool:
    """Return True if every filter field equals the document's value."""
    if not filters:
        return True
    return all(data.get(key) == value for key, value in filters.items())


def sort_documents(documents: list[Document], order: Optional[Order]) -> list[Document]:
    """Sort documents by the given fields; missing values sort last ascending."""
    result = list(documents)
    # Stable sorts applied from least to most significant key
    for field_name, descending in reversed(list(order or [])):
        present = [d for d in result if d.data.get(field_name) is not None]
        missing = [d for d in result if d.data.get(field_name) is None]
        present.sort(key=lambda d: d.data[field_name], reverse=descending)
        result = present + missing
    return result


class DocumentStore(ABC):
    """Abstract document store for dealerledger.

    The ledger needs only create/read/update/query against it; subscriptions
    are offered for presentation layers.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the store."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the store."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Create whatever the store needs before first use."""
        pass

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Get a document by id. Returns None if it does not exist."""
        pass

    @abstractmethod
    def put(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> int:
        """Create or replace a document. Returns the new version.

        Args:
            collection: Collection name
            doc_id: Document id
            data: Document body (JSON-serializable)
            expected_version: None writes unconditionally; 0 requires that the
                document does not exist yet; any other value must equal the
                stored version

        Raises:
            VersionConflictError: If expected_version does not match
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        order: Optional[Order] = None,
    ) -> list[Document]:
        """List documents in a collection matching equality filters."""
        pass

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        filters: Optional[Filters],
        callback: Callable[[Document], None],
    ) -> Subscription:
        """Register a callback invoked with every matching document written.

        A callback that raises is logged and does not affect the write or the
        other subscribers.
        """
        pass

    @abstractmethod
    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription."""
        pass
