"""Person domain service."""

import uuid
from dataclasses import replace
from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional

from dealerledger.config import LedgerConfig
from dealerledger.database.base import PERSONS, Document, DocumentStore
from dealerledger.database.mappers import person_to_document, person_to_domain
from dealerledger.domain.concurrency import create_once, update_with_retry
from dealerledger.domain.entities import Person, PersonType
from dealerledger.domain.errors import (
    ConflictError,
    InvalidAmountError,
    NotFoundError,
    ValidationError,
    amount_not_whole,
    person_not_found,
)
from dealerledger.domain.payment_split import is_whole


class PersonService:
    """Service for registering and editing customers, brokers and middle-men."""

    def __init__(self, db: DocumentStore, config: Optional[LedgerConfig] = None):
        """Initialize person service.

        Args:
            db: Document store instance
            config: Optional configuration (write retry budget)
        """
        self.db = db
        self.config = config or LedgerConfig()

    def register(
        self,
        person_type: PersonType,
        name: str,
        phone: str = "",
        address: str = "",
        id_proof_type: str = "",
        id_proof_number: str = "",
        id_proof_image_urls: tuple[str, ...] = (),
        photo_urls: tuple[str, ...] = (),
        opening_balance: Decimal = Decimal("0"),
        person_id: Optional[str] = None,
    ) -> str:
        """Register a new person.

        The opening balance is the only time a balance is set directly; every
        later change goes through ledger entries.

        Args:
            person_type: Customer, broker or middle-man
            name: Display name
            phone: Phone number
            address: Postal address
            id_proof_type: Kind of identity document
            id_proof_number: Identity document number
            id_proof_image_urls: URLs of identity document images
            photo_urls: URLs of photos
            opening_balance: Signed opening balance in whole units
            person_id: Person ID (generated if not provided)

        Returns:
            Person ID

        Raises:
            ValidationError: If the name is empty or the type is unknown
            InvalidAmountError: If the opening balance is not whole
            ConflictError: If the ID is already taken
        """
        person_type = PersonType.parse(person_type)
        if not name or not name.strip():
            raise ValidationError("Person name cannot be empty")
        if not is_whole(opening_balance):
            raise InvalidAmountError(amount_not_whole(opening_balance))

        person = Person(
            id=person_id or uuid.uuid4().hex,
            person_type=person_type,
            name=name.strip(),
            balance=opening_balance,
            opening_balance=opening_balance,
            created_at=datetime.now(UTC),
            phone=phone,
            address=address,
            id_proof_type=id_proof_type,
            id_proof_number=id_proof_number,
            id_proof_image_urls=tuple(id_proof_image_urls),
            photo_urls=tuple(photo_urls),
        )
        if not create_once(self.db, PERSONS, person.id, person_to_document(person)):
            raise ConflictError(f"Person with ID '{person.id}' already exists")
        return person.id

    def get_person(self, person_id: str) -> Optional[Person]:
        """Get person by ID, or None if not found."""
        document = self.db.get(PERSONS, person_id)
        if document is None:
            return None
        return person_to_domain(document)

    def require_person(self, person_id: str) -> Person:
        """Get person by ID.

        Raises:
            NotFoundError: If the person does not exist
        """
        person = self.get_person(person_id)
        if person is None:
            raise NotFoundError(person_not_found(person_id))
        return person

    def list_persons(self, person_type: Optional[PersonType] = None) -> list[Person]:
        """List persons ordered by name, optionally filtered by type."""
        filters = None
        if person_type is not None:
            filters = {"personType": PersonType.parse(person_type).value}
        documents = self.db.query(PERSONS, filters=filters, order=[("name", False)])
        return [person_to_domain(doc) for doc in documents]

    def update_details(
        self,
        person_id: str,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
        id_proof_type: Optional[str] = None,
        id_proof_number: Optional[str] = None,
    ) -> Person:
        """Update display fields. The balance is never touched here.

        Raises:
            NotFoundError: If the person does not exist
            ValidationError: If the new name is empty
        """
        if name is not None and not name.strip():
            raise ValidationError("Person name cannot be empty")

        changes = {
            key: value
            for key, value in {
                "name": name.strip() if name is not None else None,
                "phone": phone,
                "address": address,
                "id_proof_type": id_proof_type,
                "id_proof_number": id_proof_number,
            }.items()
            if value is not None
        }

        def mutate(document: Document):
            if not changes:
                return None
            return person_to_document(replace(person_to_domain(document), **changes))

        document = update_with_retry(
            self.db,
            PERSONS,
            person_id,
            mutate,
            max_retries=self.config.max_write_retries,
            not_found_message=person_not_found(person_id),
        )
        return person_to_domain(document)
