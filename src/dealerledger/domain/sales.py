"""Vehicle sale workflow: full-payment and EMI sales, EMI collections and their cancellation."""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Optional

from dealerledger.config import LedgerConfig
from dealerledger.database.base import (
    EMI_DETAILS,
    INFLIGHT_PAYMENT_IDS,
    SALES,
    TRANSACTIONS,
    VEHICLES,
    Document,
    DocumentStore,
)
from dealerledger.database.mappers import (
    emi_details_to_document,
    emi_details_to_domain,
    entry_to_document,
    entry_to_domain,
    sale_to_document,
    sale_to_domain,
)
from dealerledger.domain import emi
from dealerledger.domain.capital import CapitalService
from dealerledger.domain.concurrency import apply_once, create_once, update_with_retry
from dealerledger.domain.entities import (
    EmiDetails,
    EmiFrequency,
    LedgerEntry,
    PersonType,
    RelatedRef,
    SaleStatus,
    SaleType,
    TransactionKind,
    TransactionStatus,
    VehicleSale,
)
from dealerledger.domain.errors import (
    ConflictError,
    InvalidAmountError,
    NotFoundError,
    ScheduleAlreadyCompleteError,
    ValidationError,
    amount_not_positive,
    entry_not_found,
    sale_not_found,
    schedule_not_found,
)
from dealerledger.domain.history import TransactionQueryService
from dealerledger.domain.ledger import LedgerService, create_entry
from dealerledger.domain.payment_split import PaymentSplit, resolve_split
from dealerledger.domain.person import PersonService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmiPaymentReceipt:
    """Outcome of one EMI collection or cancellation."""

    sale: VehicleSale
    details: EmiDetails
    entry: LedgerEntry


class SaleService:
    """Service for recording vehicle sales and collecting EMI installments.

    Every step is keyed by a deterministic id, so repeating a call after a
    partial failure finishes the work without applying anything twice.
    """

    def __init__(self, db: DocumentStore, config: Optional[LedgerConfig] = None):
        """Initialize sale service.

        Args:
            db: Document store instance
            config: Optional configuration (write retry budget)
        """
        self.db = db
        self.config = config or LedgerConfig()
        self.persons = PersonService(db, self.config)
        self.ledger = LedgerService(db, self.config)
        self.capital = CapitalService(db)
        self.history = TransactionQueryService(db)

    def get_sale(self, sale_id: str) -> Optional[VehicleSale]:
        """Get sale by ID, or None if not found."""
        document = self.db.get(SALES, sale_id)
        if document is None:
            return None
        return sale_to_domain(document)

    def require_sale(self, sale_id: str) -> VehicleSale:
        """Get sale by ID.

        Raises:
            NotFoundError: If the sale does not exist
        """
        sale = self.get_sale(sale_id)
        if sale is None:
            raise NotFoundError(sale_not_found(sale_id))
        return sale

    def get_emi_details(self, sale_id: str) -> Optional[EmiDetails]:
        """Get the installment schedule of an EMI sale, or None."""
        document = self.db.get(EMI_DETAILS, sale_id)
        if document is None:
            return None
        return emi_details_to_domain(document)

    def list_sales(self, customer_id: Optional[str] = None) -> list[VehicleSale]:
        """List sales newest first, optionally for one customer."""
        filters = {"customerRef": customer_id} if customer_id is not None else None
        documents = self.db.query(
            SALES, filters=filters, order=[("saleDate", True), ("createdAt", True)]
        )
        return [sale_to_domain(doc) for doc in documents]

    def _require_customer(self, customer_id: str):
        customer = self.persons.require_person(customer_id)
        if customer.person_type is not PersonType.CUSTOMER:
            raise ValidationError(
                f"Person {customer_id} is a {customer.person_type.value}, not a CUSTOMER"
            )
        return customer

    def _post_inflow(
        self,
        entry_id: str,
        kind: TransactionKind,
        customer_id: str,
        amount: Decimal,
        split: PaymentSplit,
        entry_date: date,
        sale_ref: RelatedRef,
        description: str,
    ) -> LedgerEntry:
        entry = create_entry(
            kind=kind,
            person_id=customer_id,
            person_type=PersonType.CUSTOMER,
            amount=amount,
            split=split,
            entry_date=entry_date,
            related_ref=sale_ref,
            description=description,
            entry_id=entry_id,
        )
        entry = self.ledger.post(entry)
        self._record_capital(entry)
        return entry

    def _record_capital(self, entry: LedgerEntry) -> None:
        split = PaymentSplit(
            method=entry.payment_method,
            cash=entry.cash_amount,
            bank=entry.bank_amount,
            credit=entry.credit_amount,
        )
        self.capital.record_split(
            split,
            outflow=False,
            id_prefix=entry.id,
            transaction_date=entry.date,
            reference=entry.related_ref,
        )

    def record_sale(
        self,
        customer_id: str,
        total_amount: Decimal,
        sale_type: SaleType,
        payment_method=None,
        cash: Decimal = Decimal("0"),
        bank: Decimal = Decimal("0"),
        credit: Decimal = Decimal("0"),
        vehicle_ref: Optional[str] = None,
        sale_date: Optional[date] = None,
        down_payment: Decimal = Decimal("0"),
        interest_rate: Decimal = Decimal("0"),
        frequency: EmiFrequency = EmiFrequency.MONTHLY,
        installments_count: Optional[int] = None,
        sale_id: Optional[str] = None,
    ) -> VehicleSale:
        """Record the sale of a vehicle to a customer.

        A FULL_PAYMENT sale is COMPLETED at once and posts a SALE entry for
        the total. An EMI sale builds its installment schedule, stays ACTIVE
        and posts a SALE entry only for the down payment, if any. The
        cash/bank/credit amounts describe the payment made now: the total for
        a full payment, the down payment for an EMI sale.

        Args:
            customer_id: ID of a CUSTOMER person
            total_amount: Sale price in whole units
            sale_type: FULL_PAYMENT or EMI
            payment_method: Method of the payment made now (inferred if None)
            cash: Cash portion
            bank: Bank portion
            credit: Credit portion
            vehicle_ref: Optional vehicle ID
            sale_date: Sale date (defaults to today)
            down_payment: EMI down payment
            interest_rate: EMI interest rate in percent
            frequency: EMI payment frequency
            installments_count: Number of EMI installments
            sale_id: Sale ID (generated if not provided)

        Returns:
            The stored sale

        Raises:
            NotFoundError: If the customer does not exist
            ValidationError: If the person is not a customer or the EMI terms
                are invalid
            InvalidAmountError: If an amount is invalid
            SplitMismatchError: If the payment split does not reconcile
        """
        sale_type = SaleType.parse(sale_type)
        sale_date = sale_date or date.today()
        sale_id = sale_id or uuid.uuid4().hex
        self._require_customer(customer_id)
        if total_amount <= 0:
            raise InvalidAmountError(amount_not_positive(total_amount))

        sale_ref = RelatedRef(SALES, sale_id)
        sale = VehicleSale(
            id=sale_id,
            customer_id=customer_id,
            sale_type=sale_type,
            total_amount=total_amount,
            down_payment=Decimal("0"),
            status=SaleStatus.COMPLETED,
            sale_date=sale_date,
            created_at=datetime.now(UTC),
            vehicle_ref=RelatedRef(VEHICLES, vehicle_ref) if vehicle_ref else None,
        )

        if sale_type is SaleType.FULL_PAYMENT:
            split = resolve_split(total_amount, payment_method, cash, bank, credit)
            create_once(self.db, SALES, sale_id, sale_to_document(sale))
            self._post_inflow(
                f"{sale_id}-payment",
                TransactionKind.SALE,
                customer_id,
                total_amount,
                split,
                sale_date,
                sale_ref,
                "Vehicle sale - full payment",
            )
            logger.info("Recorded full-payment sale %s of %s to %s", sale_id, total_amount, customer_id)
            return self.require_sale(sale_id)

        if installments_count is None:
            raise ValidationError("An EMI sale needs an installments count")
        details = emi.create_schedule(
            total_price=total_amount,
            down_payment=down_payment,
            interest_rate=Decimal(interest_rate),
            frequency=frequency,
            installments_count=installments_count,
            purchase_date=sale_date,
            vehicle_sale_ref=sale_id,
        )
        split = None
        if down_payment > 0:
            split = resolve_split(down_payment, payment_method, cash, bank, credit)

        # Schedule first, so an ACTIVE sale never points at a missing schedule
        create_once(self.db, EMI_DETAILS, sale_id, emi_details_to_document(details))
        sale = replace(
            sale,
            down_payment=down_payment,
            status=SaleStatus.ACTIVE,
            emi_details_ref=sale_id,
        )
        create_once(self.db, SALES, sale_id, sale_to_document(sale))

        if split is not None:
            self._post_inflow(
                f"{sale_id}-down-payment",
                TransactionKind.SALE,
                customer_id,
                down_payment,
                split,
                sale_date,
                sale_ref,
                "Vehicle sale - EMI down payment",
            )
        logger.info(
            "Recorded EMI sale %s of %s to %s: %d x %s",
            sale_id,
            total_amount,
            customer_id,
            details.installments_count,
            details.installment_amount,
        )
        return self.require_sale(sale_id)

    def record_emi_payment(
        self,
        sale_id: str,
        cash: Decimal = Decimal("0"),
        bank: Decimal = Decimal("0"),
        credit: Decimal = Decimal("0"),
        payment_date: Optional[date] = None,
        entry_id: Optional[str] = None,
        payment_method=None,
    ) -> EmiPaymentReceipt:
        """Collect an EMI payment for a sale.

        The EMI_PAYMENT entry is recorded PENDING first, so it counts for
        nothing until the schedule has absorbed it. Then the schedule is
        advanced, the entry completed and posted to the customer's balance,
        and the capital inflows recorded. Retrying with the same ``entry_id``
        completes any step that did not happen and repeats none that did.

        Args:
            sale_id: ID of an EMI sale
            cash: Cash portion
            bank: Bank portion
            credit: Credit portion
            payment_date: Date of the payment (defaults to today)
            entry_id: ID of the EMI_PAYMENT entry (generated if not provided)
            payment_method: Payment method (inferred from the portions if None)

        Returns:
            EmiPaymentReceipt with the sale, the advanced schedule and the entry

        Raises:
            NotFoundError: If the sale or its schedule does not exist
            ValidationError: If the sale is not an EMI sale
            InvalidAmountError: If the payment is not positive
            SplitMismatchError: If the payment split does not reconcile
            ScheduleAlreadyCompleteError: If no installments remain
            ConflictError: If ``entry_id`` is already used by another entry
        """
        sale = self.require_sale(sale_id)
        if not sale.emi:
            raise ValidationError(f"Sale {sale_id} is not an EMI sale")
        amount = cash + bank + credit
        if amount <= 0:
            raise InvalidAmountError(amount_not_positive(amount))
        split = resolve_split(amount, payment_method, cash, bank, credit)
        payment_date = payment_date or date.today()
        entry_id = entry_id or uuid.uuid4().hex
        schedule_id = sale.emi_details_ref or sale_id

        details = self.get_emi_details(schedule_id)
        if details is None:
            raise NotFoundError(schedule_not_found(sale_id))
        if details.remaining_installments == 0 and self.ledger.get_entry(entry_id) is None:
            raise ScheduleAlreadyCompleteError(
                f"EMI schedule for sale {sale_id} is already complete"
            )

        number = min(details.paid_installments + 1, details.installments_count)
        entry = create_entry(
            kind=TransactionKind.EMI_PAYMENT,
            person_id=sale.customer_id,
            person_type=PersonType.CUSTOMER,
            amount=amount,
            split=split,
            entry_date=payment_date,
            related_ref=RelatedRef(SALES, sale_id),
            description=f"EMI Payment - Installment {number}/{details.installments_count}",
            entry_id=entry_id,
        )
        entry = self.ledger.record(replace(entry, status=TransactionStatus.PENDING))

        def advance(document: Document):
            current = emi_details_to_domain(document)
            return emi_details_to_document(emi.apply_payment(current, entry.amount, entry.date))

        details = emi_details_to_domain(
            apply_once(
                self.db,
                EMI_DETAILS,
                schedule_id,
                entry.id,
                INFLIGHT_PAYMENT_IDS,
                advance,
                max_retries=self.config.max_write_retries,
                not_found_message=schedule_not_found(sale_id),
            )
        )
        entry = self.ledger.post(self._complete_entry(entry.id))
        self._record_capital(entry)

        if details.remaining_installments == 0:
            sale = self._set_status(sale_id, SaleStatus.COMPLETED)
            logger.info("EMI schedule for sale %s completed", sale_id)

        logger.info(
            "Collected EMI payment %s of %s for sale %s (%d/%d paid)",
            entry.id,
            entry.amount,
            sale_id,
            details.paid_installments,
            details.installments_count,
        )
        return EmiPaymentReceipt(sale=sale, details=details, entry=entry)

    def cancel_emi_payment(
        self, entry_id: str, cancel_date: Optional[date] = None
    ) -> EmiPaymentReceipt:
        """Cancel an EMI payment and rebuild its sale's schedule.

        The payment is reversed like any other entry (balance and capital are
        offset, the original is marked CANCELLED). The schedule is then
        recomputed from its terms by replaying every payment that still
        stands, and a sale that was COMPLETED goes back to ACTIVE when
        installments remain. Repeating the call changes nothing further.

        Args:
            entry_id: ID of the EMI_PAYMENT entry
            cancel_date: Date of the reversal (defaults to today)

        Returns:
            EmiPaymentReceipt with the sale, the rebuilt schedule and the
            reversing entry

        Raises:
            NotFoundError: If the entry, its sale or the schedule does not exist
            ConflictError: If the entry is not an EMI payment, is a reversal
                or is still pending
        """
        original = self.ledger.require_entry(entry_id)
        if original.kind is not TransactionKind.EMI_PAYMENT:
            raise ConflictError(f"Ledger entry {entry_id} is not an EMI payment")
        if original.related_ref is None or original.related_ref.collection != SALES:
            raise ConflictError(f"EMI payment {entry_id} does not reference a sale")
        sale = self.require_sale(original.related_ref.id)

        reversal = self.ledger.reverse(original, cancel_date)
        details = self._rebuild_schedule(sale)
        if details.remaining_installments > 0:
            sale = self._set_status(sale.id, SaleStatus.ACTIVE)

        logger.info(
            "Cancelled EMI payment %s for sale %s (%d/%d paid)",
            entry_id,
            sale.id,
            details.paid_installments,
            details.installments_count,
        )
        return EmiPaymentReceipt(sale=sale, details=details, entry=reversal)

    def _standing_payments(self, sale_id: str, schedule_target: str, details: EmiDetails) -> list[LedgerEntry]:
        # Payments the schedule has absorbed and that are not cancelled
        entries = [
            e
            for e in self.history.entries_for_related(RelatedRef(SALES, sale_id))
            if e.kind is TransactionKind.EMI_PAYMENT
            and not e.is_reversal
            and e.status is not TransactionStatus.CANCELLED
            and (schedule_target in e.applied_to or e.id in details.inflight_payment_ids)
        ]
        return sorted(entries, key=lambda e: e.created_at)

    def _rebuild_schedule(self, sale: VehicleSale) -> EmiDetails:
        schedule_id = sale.emi_details_ref or sale.id
        target = f"{EMI_DETAILS}/{schedule_id}"

        def rebuild(document: Document):
            details = emi_details_to_domain(document)
            payments = [(e.amount, e.date) for e in self._standing_payments(sale.id, target, details)]
            rebuilt = emi.replay_payments(
                details, emi.advance_due_date(sale.sale_date, details.frequency), payments
            )
            if rebuilt == details:
                return None
            return emi_details_to_document(rebuilt)

        document = update_with_retry(
            self.db,
            EMI_DETAILS,
            schedule_id,
            rebuild,
            max_retries=self.config.max_write_retries,
            not_found_message=schedule_not_found(sale.id),
        )
        return emi_details_to_domain(document)

    def _complete_entry(self, entry_id: str) -> LedgerEntry:
        def complete(document: Document):
            entry = entry_to_domain(document)
            if entry.status is not TransactionStatus.PENDING:
                return None
            return entry_to_document(replace(entry, status=TransactionStatus.COMPLETED))

        document = update_with_retry(
            self.db,
            TRANSACTIONS,
            entry_id,
            complete,
            max_retries=self.config.max_write_retries,
            not_found_message=entry_not_found(entry_id),
        )
        return entry_to_domain(document)

    def _set_status(self, sale_id: str, status: SaleStatus) -> VehicleSale:
        def change(document: Document):
            sale = sale_to_domain(document)
            if sale.status is status:
                return None
            return sale_to_document(replace(sale, status=status))

        document = update_with_retry(
            self.db,
            SALES,
            sale_id,
            change,
            max_retries=self.config.max_write_retries,
            not_found_message=sale_not_found(sale_id),
        )
        return sale_to_domain(document)

    def due_sales(self, on_date: Optional[date] = None) -> list[tuple[VehicleSale, EmiDetails]]:
        """Return ACTIVE EMI sales with an installment due on or before a date.

        Results are ordered by due date, oldest first.
        """
        on_date = on_date or date.today()
        documents = self.db.query(
            SALES,
            filters={"status": SaleStatus.ACTIVE.value, "purchaseType": SaleType.EMI.value},
        )
        due = []
        for document in documents:
            sale = sale_to_domain(document)
            details = self.get_emi_details(sale.emi_details_ref or sale.id)
            if details is None:
                logger.warning("EMI sale %s has no schedule", sale.id)
                continue
            if details.remaining_installments > 0 and details.next_due_date <= on_date:
                due.append((sale, details))
        return sorted(due, key=lambda pair: pair[1].next_due_date)
