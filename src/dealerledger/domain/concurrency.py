"""Optimistic read-modify-write helpers over the document store."""

import logging
from typing import Any, Callable, Optional

from dealerledger.database.base import APPLIED_TO, TRANSACTIONS, Document, DocumentStore
from dealerledger.domain.errors import NotFoundError, VersionConflictError, entry_not_found

logger = logging.getLogger(__name__)


def update_with_retry(
    db: DocumentStore,
    collection: str,
    doc_id: str,
    mutate: Callable[[Document], Optional[dict[str, Any]]],
    max_retries: int = 3,
    not_found_message: Optional[str] = None,
) -> Document:
    """Apply ``mutate`` to a document with compare-and-set, retrying on conflict.

    Args:
        db: Document store
        collection: Collection name
        doc_id: Document id
        mutate: Receives the current document and returns the new body, or
            None when no write is needed
        max_retries: Attempts before the last conflict is re-raised
        not_found_message: Message for NotFoundError if the document is missing

    Returns:
        The document as stored after the update

    Raises:
        NotFoundError: If the document does not exist
        VersionConflictError: If every attempt lost to a concurrent writer
    """
    last_conflict: Optional[VersionConflictError] = None
    for attempt in range(1, max(max_retries, 1) + 1):
        document = db.get(collection, doc_id)
        if document is None:
            raise NotFoundError(not_found_message or f"{collection}/{doc_id} not found")

        data = mutate(document)
        if data is None:
            return document

        try:
            version = db.put(collection, doc_id, data, expected_version=document.version)
        except VersionConflictError as e:
            logger.warning(
                "Version conflict on %s/%s (attempt %d of %d)", collection, doc_id, attempt, max_retries
            )
            last_conflict = e
            continue
        return Document(collection=collection, id=doc_id, data=data, version=version)

    raise last_conflict


def create_once(db: DocumentStore, collection: str, doc_id: str, data: dict[str, Any]) -> bool:
    """Create a document unless one with the same id already exists.

    Returns:
        True if this call created it, False if it was already there
    """
    try:
        db.put(collection, doc_id, data, expected_version=0)
    except VersionConflictError:
        return False
    return True


def _applied_targets(db: DocumentStore, entry_id: str) -> list[str]:
    document = db.get(TRANSACTIONS, entry_id)
    if document is None:
        raise NotFoundError(entry_not_found(entry_id))
    return document.data.get(APPLIED_TO, [])


def apply_once(
    db: DocumentStore,
    collection: str,
    doc_id: str,
    entry_id: str,
    inflight_field: str,
    mutate: Callable[[Document], Optional[dict[str, Any]]],
    max_retries: int = 3,
    not_found_message: Optional[str] = None,
) -> Document:
    """Fold a stored ledger entry into a document exactly once.

    Three compare-and-set writes:

    1. ``mutate`` is applied to the target and the entry id is added to its
       ``inflight_field`` list in the same write;
    2. the target (``collection/id``) is added to the entry's ``appliedTo``;
    3. the entry id is dropped from the target's ``inflight_field`` list.

    Step 1 is skipped when either side already shows the entry, so a retry
    after a failure at any step finishes the remaining steps without
    applying the entry twice. The in-flight list only ever holds entries
    between steps 1 and 3.

    Args:
        db: Document store
        collection: Collection of the target document
        doc_id: Target document id
        entry_id: ID of a ledger entry already stored in TRANSACTIONS
        inflight_field: Target field listing entries between steps 1 and 3
        mutate: Receives the current target and returns its new body, or
            None when no write is needed
        max_retries: Attempts per write before the last conflict is re-raised
        not_found_message: Message for NotFoundError if the target is missing

    Returns:
        The target document as stored after the last step

    Raises:
        NotFoundError: If the target or the entry does not exist
        VersionConflictError: If a write lost to concurrent writers every time
    """
    target = f"{collection}/{doc_id}"

    def absorb(document: Document):
        if entry_id in document.data.get(inflight_field, []):
            return None
        # Read after the target so a concurrent acknowledgement is seen
        if target in _applied_targets(db, entry_id):
            return None
        data = mutate(document)
        if data is None:
            return None
        data[inflight_field] = sorted(set(data.get(inflight_field, [])) | {entry_id})
        return data

    def acknowledge(document: Document):
        applied = document.data.get(APPLIED_TO, [])
        if target in applied:
            return None
        return {**document.data, APPLIED_TO: sorted(set(applied) | {target})}

    def settle(document: Document):
        inflight = document.data.get(inflight_field, [])
        if entry_id not in inflight:
            return None
        return {**document.data, inflight_field: [i for i in inflight if i != entry_id]}

    update_with_retry(db, collection, doc_id, absorb, max_retries, not_found_message)
    update_with_retry(
        db, TRANSACTIONS, entry_id, acknowledge, max_retries, entry_not_found(entry_id)
    )
    return update_with_retry(db, collection, doc_id, settle, max_retries, not_found_message)
