"""Vehicle purchase workflow."""

import logging
import uuid
from dataclasses import replace
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Optional

from dealerledger.config import LedgerConfig
from dealerledger.database.base import COUNTERS, PURCHASES, VEHICLES, Document, DocumentStore
from dealerledger.database.mappers import purchase_to_document, purchase_to_domain
from dealerledger.domain.capital import CapitalService
from dealerledger.domain.concurrency import create_once, update_with_retry
from dealerledger.domain.entities import (
    PaymentMethod,
    PersonType,
    Purchase,
    RelatedRef,
    TransactionKind,
)
from dealerledger.domain.errors import (
    InvalidAmountError,
    NotFoundError,
    ValidationError,
    amount_not_positive,
    amount_not_whole,
    purchase_not_found,
)
from dealerledger.domain.ledger import LedgerService, create_entry
from dealerledger.domain.payment_split import is_whole, resolve_split, single_method_split
from dealerledger.domain.person import PersonService

logger = logging.getLogger(__name__)

ORDER_NUMBER_COUNTER = "orderNumber"
BROKER_TYPES = (PersonType.BROKER, PersonType.MIDDLE_MAN)


class PurchaseService:
    """Service for recording vehicle purchases from sellers."""

    def __init__(self, db: DocumentStore, config: Optional[LedgerConfig] = None):
        """Initialize purchase service.

        Args:
            db: Document store instance
            config: Optional configuration (write retry budget)
        """
        self.db = db
        self.config = config or LedgerConfig()
        self.persons = PersonService(db, self.config)
        self.ledger = LedgerService(db, self.config)
        self.capital = CapitalService(db)

    def next_order_number(self) -> int:
        """Allocate the next purchase order number from the shared counter."""
        create_once(self.db, COUNTERS, ORDER_NUMBER_COUNTER, {"value": 0})
        document = update_with_retry(
            self.db,
            COUNTERS,
            ORDER_NUMBER_COUNTER,
            lambda doc: {"value": int(doc.data.get("value", 0)) + 1},
            max_retries=self.config.max_write_retries,
        )
        return int(document.data["value"])

    def get_purchase(self, purchase_id: str) -> Optional[Purchase]:
        """Get purchase by ID, or None if not found."""
        document = self.db.get(PURCHASES, purchase_id)
        if document is None:
            return None
        return purchase_to_domain(document)

    def require_purchase(self, purchase_id: str) -> Purchase:
        """Get purchase by ID.

        Raises:
            NotFoundError: If the purchase does not exist
        """
        purchase = self.get_purchase(purchase_id)
        if purchase is None:
            raise NotFoundError(purchase_not_found(purchase_id))
        return purchase

    def list_purchases(self, seller_id: Optional[str] = None) -> list[Purchase]:
        """List purchases by order number, newest first."""
        filters = {"sellerRef": seller_id} if seller_id is not None else None
        documents = self.db.query(PURCHASES, filters=filters, order=[("orderNumber", True)])
        return [purchase_to_domain(doc) for doc in documents]

    def _check_broker(self, broker_id: Optional[str], broker_fee: Optional[Decimal]) -> None:
        if broker_fee is None:
            return
        if broker_id is None:
            raise ValidationError("A broker fee needs a broker")
        if broker_fee <= 0:
            raise InvalidAmountError(amount_not_positive(broker_fee))
        if not is_whole(broker_fee):
            raise InvalidAmountError(amount_not_whole(broker_fee))
        broker = self.persons.require_person(broker_id)
        if broker.person_type not in BROKER_TYPES:
            raise ValidationError(
                f"Person {broker_id} is a {broker.person_type.value}, not a BROKER or MIDDLE_MAN"
            )

    @staticmethod
    def _check_gst(gst_amount: Decimal, grand_total: Decimal) -> None:
        if not is_whole(gst_amount):
            raise InvalidAmountError(amount_not_whole(gst_amount))
        if gst_amount < 0 or gst_amount > grand_total:
            raise InvalidAmountError(
                f"GST amount must be between 0 and the grand total {grand_total}, got {gst_amount}"
            )

    def record_purchase(
        self,
        seller_id: str,
        grand_total: Decimal,
        gst_amount: Decimal = Decimal("0"),
        payment_method: Optional[PaymentMethod] = None,
        cash: Decimal = Decimal("0"),
        bank: Decimal = Decimal("0"),
        credit: Decimal = Decimal("0"),
        vehicle_ref: Optional[str] = None,
        broker_id: Optional[str] = None,
        broker_fee: Optional[Decimal] = None,
        purchase_date: Optional[date] = None,
        purchase_id: Optional[str] = None,
    ) -> Purchase:
        """Record a vehicle bought from a seller.

        Posts a PURCHASE entry against the seller and, when a broker fee is
        given, a cash BROKER_FEE entry against the broker. Each non-zero
        payment method becomes a capital outflow. Repeating the call with the
        same ``purchase_id`` keeps the order number and applies nothing twice.

        Args:
            seller_id: ID of the person selling the vehicle
            grand_total: Purchase price including GST, in whole units
            gst_amount: GST part of the grand total
            payment_method: Payment method (inferred from the portions if None)
            cash: Cash portion
            bank: Bank portion
            credit: Credit portion
            vehicle_ref: Optional vehicle ID
            broker_id: Optional broker or middle-man ID
            broker_fee: Optional fee paid to the broker in cash
            purchase_date: Date of the purchase (defaults to today)
            purchase_id: Purchase ID (generated if not provided)

        Returns:
            The stored purchase

        Raises:
            NotFoundError: If the seller or broker does not exist
            ValidationError: If the broker is invalid
            InvalidAmountError: If an amount is invalid
            SplitMismatchError: If the payment split does not reconcile
        """
        seller = self.persons.require_person(seller_id)
        if grand_total <= 0:
            raise InvalidAmountError(amount_not_positive(grand_total))
        if not is_whole(grand_total):
            raise InvalidAmountError(amount_not_whole(grand_total))
        self._check_gst(gst_amount, grand_total)
        self._check_broker(broker_id, broker_fee)
        split = resolve_split(grand_total, payment_method, cash, bank, credit)
        purchase_date = purchase_date or date.today()
        purchase_id = purchase_id or uuid.uuid4().hex

        purchase = self.get_purchase(purchase_id)
        if purchase is None:
            purchase = Purchase(
                id=purchase_id,
                seller_id=seller_id,
                grand_total=grand_total,
                gst_amount=gst_amount,
                order_number=self.next_order_number(),
                payment_method=split.method,
                cash_amount=split.cash,
                bank_amount=split.bank,
                credit_amount=split.credit,
                created_at=datetime.now(UTC),
                vehicle_ref=RelatedRef(VEHICLES, vehicle_ref) if vehicle_ref else None,
                broker_id=broker_id,
                broker_fee=broker_fee,
            )
            if not create_once(self.db, PURCHASES, purchase_id, purchase_to_document(purchase)):
                purchase = self.require_purchase(purchase_id)

        purchase_ref = RelatedRef(PURCHASES, purchase_id)
        order_number = purchase.order_number

        entry = create_entry(
            kind=TransactionKind.PURCHASE,
            person_id=seller_id,
            person_type=seller.person_type,
            amount=purchase.grand_total,
            split=split,
            entry_date=purchase_date,
            related_ref=purchase_ref,
            order_number=order_number,
            description=f"Vehicle purchase - order #{order_number}",
            entry_id=f"{purchase_id}-purchase",
        )
        entry = self.ledger.post(entry)
        self.capital.record_split(
            split,
            outflow=True,
            id_prefix=entry.id,
            transaction_date=purchase_date,
            reference=purchase_ref,
            order_number=order_number,
        )

        if purchase.broker_id is not None and purchase.broker_fee is not None:
            broker = self.persons.require_person(purchase.broker_id)
            fee_split = single_method_split(PaymentMethod.CASH, purchase.broker_fee)
            fee_entry = create_entry(
                kind=TransactionKind.BROKER_FEE,
                person_id=broker.id,
                person_type=broker.person_type,
                amount=purchase.broker_fee,
                split=fee_split,
                entry_date=purchase_date,
                related_ref=purchase_ref,
                order_number=order_number,
                description=f"Broker fee - order #{order_number}",
                entry_id=f"{purchase_id}-broker-fee",
            )
            fee_entry = self.ledger.post(fee_entry)
            self.capital.record_split(
                fee_split,
                outflow=True,
                id_prefix=fee_entry.id,
                transaction_date=purchase_date,
                reference=purchase_ref,
                order_number=order_number,
            )

        logger.info(
            "Recorded purchase %s (order #%d) of %s from %s",
            purchase_id,
            order_number,
            purchase.grand_total,
            seller_id,
        )
        return purchase

    def correct_metadata(
        self,
        purchase_id: str,
        vehicle_ref: Optional[str] = None,
        gst_amount: Optional[Decimal] = None,
    ) -> Purchase:
        """Correct the vehicle reference or GST of a purchase.

        Money movements are not edited here; a wrong amount is fixed by
        cancelling the ledger entry and recording a new purchase.

        Raises:
            NotFoundError: If the purchase does not exist
            InvalidAmountError: If the GST amount is invalid
        """

        def mutate(document: Document):
            purchase = purchase_to_domain(document)
            changes = {}
            if vehicle_ref is not None:
                changes["vehicle_ref"] = RelatedRef(VEHICLES, vehicle_ref)
            if gst_amount is not None:
                self._check_gst(gst_amount, purchase.grand_total)
                changes["gst_amount"] = gst_amount
            if not changes:
                return None
            return purchase_to_document(replace(purchase, **changes))

        document = update_with_retry(
            self.db,
            PURCHASES,
            purchase_id,
            mutate,
            max_retries=self.config.max_write_retries,
            not_found_message=purchase_not_found(purchase_id),
        )
        return purchase_to_domain(document)
