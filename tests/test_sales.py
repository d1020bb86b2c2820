"""Tests for the sale workflow."""

import pytest
from datetime import date
from decimal import Decimal

from dealerledger.domain import emi
from dealerledger.domain.entities import (
    CapitalSource,
    EmiState,
    PaymentMethod,
    PersonType,
    SaleStatus,
    SaleType,
    TransactionKind,
    TransactionStatus,
)
from dealerledger.domain.errors import (
    ConflictError,
    InvalidAmountError,
    NotFoundError,
    ScheduleAlreadyCompleteError,
    SplitMismatchError,
    ValidationError,
)


class TestFullPaymentSale:
    """Tests for FULL_PAYMENT sales."""

    def test_cash_sale(self, sale_service, person_service, capital_service, history_service, sample_customer):
        sale = sale_service.record_sale(
            customer_id=sample_customer.id,
            total_amount=Decimal("5000"),
            sale_type=SaleType.FULL_PAYMENT,
            payment_method=PaymentMethod.CASH,
            cash=Decimal("5000"),
            vehicle_ref="v-1",
            sale_date=date(2024, 3, 1),
            sale_id="s1",
        )

        assert sale.status is SaleStatus.COMPLETED
        assert not sale.emi
        assert str(sale.vehicle_ref) == "vehicles/v-1"
        assert person_service.require_person(sample_customer.id).balance == Decimal("5000")
        entries = history_service.history(sample_customer.id)
        assert [e.id for e in entries] == ["s1-payment"]
        assert entries[0].kind is TransactionKind.SALE
        assert capital_service.balance(CapitalSource.CASH) == Decimal("5000")

    def test_split_mismatch(self, sale_service, sample_customer):
        with pytest.raises(SplitMismatchError) as exc_info:
            sale_service.record_sale(
                customer_id=sample_customer.id,
                total_amount=Decimal("5000"),
                sale_type=SaleType.FULL_PAYMENT,
                payment_method=PaymentMethod.CASH,
                cash=Decimal("4000"),
            )
        assert exc_info.value.expected == Decimal("5000")
        assert exc_info.value.actual == Decimal("4000")
        assert sale_service.list_sales() == []

    def test_mixed_sale_records_capital_per_source(self, sale_service, capital_service, sample_customer):
        sale_service.record_sale(
            customer_id=sample_customer.id,
            total_amount=Decimal("50000"),
            sale_type=SaleType.FULL_PAYMENT,
            cash=Decimal("20000"),
            bank=Decimal("30000"),
        )
        assert capital_service.balance(CapitalSource.CASH) == Decimal("20000")
        assert capital_service.balance(CapitalSource.BANK) == Decimal("30000")
        assert capital_service.balance(CapitalSource.CREDIT) == 0

    def test_repeat_with_same_id_is_idempotent(self, sale_service, person_service, sample_customer):
        for _ in range(2):
            sale_service.record_sale(
                customer_id=sample_customer.id,
                total_amount=Decimal("5000"),
                sale_type=SaleType.FULL_PAYMENT,
                payment_method=PaymentMethod.BANK,
                sale_id="s1",
            )
        assert person_service.require_person(sample_customer.id).balance == Decimal("5000")
        assert len(sale_service.list_sales()) == 1

    def test_customer_must_be_customer(self, sale_service, sample_broker):
        with pytest.raises(ValidationError):
            sale_service.record_sale(
                customer_id=sample_broker.id,
                total_amount=Decimal("5000"),
                sale_type=SaleType.FULL_PAYMENT,
                payment_method=PaymentMethod.CASH,
            )

    def test_missing_customer(self, sale_service):
        with pytest.raises(NotFoundError):
            sale_service.record_sale(
                customer_id="ghost",
                total_amount=Decimal("5000"),
                sale_type=SaleType.FULL_PAYMENT,
            )


class TestEmiSale:
    """Tests for EMI sales and collections."""

    def test_emi_sale_creates_schedule(self, sale_service, person_service, emi_sale, sample_customer):
        assert emi_sale.status is SaleStatus.ACTIVE
        assert emi_sale.emi
        assert emi_sale.emi_details_ref == "sale-emi"
        details = sale_service.get_emi_details("sale-emi")
        assert details.installment_amount == Decimal("10000")
        assert details.next_due_date == date(2024, 2, 15)
        # No down payment, so nothing is owed yet through the ledger
        assert person_service.require_person(sample_customer.id).balance == 0

    def test_down_payment_posts_sale_entry(self, sale_service, person_service, history_service, sample_customer):
        sale_service.record_sale(
            customer_id=sample_customer.id,
            total_amount=Decimal("100000"),
            sale_type=SaleType.EMI,
            down_payment=Decimal("20000"),
            payment_method=PaymentMethod.CASH,
            installments_count=10,
            sale_id="s2",
        )
        entries = history_service.history(sample_customer.id)
        assert [e.id for e in entries] == ["s2-down-payment"]
        assert entries[0].description == "Vehicle sale - EMI down payment"
        assert sale_service.get_emi_details("s2").installment_amount == Decimal("8000")
        assert person_service.require_person(sample_customer.id).balance == Decimal("20000")

    def test_emi_sale_requires_installments(self, sale_service, sample_customer):
        with pytest.raises(ValidationError):
            sale_service.record_sale(
                customer_id=sample_customer.id,
                total_amount=Decimal("100000"),
                sale_type=SaleType.EMI,
            )

    def test_emi_payment(self, sale_service, person_service, emi_sale, sample_customer):
        receipt = sale_service.record_emi_payment(
            "sale-emi", cash=Decimal("10000"), payment_date=date(2024, 2, 15), entry_id="pay-1"
        )
        assert receipt.entry.kind is TransactionKind.EMI_PAYMENT
        assert receipt.entry.payment_method is PaymentMethod.CASH
        assert receipt.entry.description == "EMI Payment - Installment 1/10"
        assert receipt.details.paid_installments == 1
        assert receipt.details.next_due_date == date(2024, 3, 15)
        assert person_service.require_person(sample_customer.id).balance == Decimal("10000")

    def test_emi_payment_retry_is_idempotent(self, sale_service, person_service, emi_sale, sample_customer):
        for _ in range(2):
            receipt = sale_service.record_emi_payment(
                "sale-emi", bank=Decimal("10000"), entry_id="pay-1"
            )
        assert receipt.details.paid_installments == 1
        assert person_service.require_person(sample_customer.id).balance == Decimal("10000")

    def test_mixed_emi_payment(self, sale_service, emi_sale):
        receipt = sale_service.record_emi_payment(
            "sale-emi", cash=Decimal("4000"), bank=Decimal("6000")
        )
        assert receipt.entry.payment_method is PaymentMethod.MIXED
        assert receipt.entry.cash_amount + receipt.entry.bank_amount == receipt.entry.amount

    def test_partial_payments(self, sale_service, emi_sale):
        receipt = sale_service.record_emi_payment("sale-emi", cash=Decimal("5000"))
        assert receipt.details.pending_extra_balance == Decimal("-5000")
        assert emi.schedule_state(receipt.details) is EmiState.SCHEDULED
        receipt = sale_service.record_emi_payment("sale-emi", cash=Decimal("5000"))
        assert receipt.details.paid_installments == 1
        assert receipt.details.pending_extra_balance == 0

    def test_final_payment_completes_sale(self, sale_service, person_service, emi_sale, sample_customer):
        for i in range(10):
            receipt = sale_service.record_emi_payment(
                "sale-emi", cash=Decimal("10000"), entry_id=f"pay-{i}"
            )
        assert receipt.sale.status is SaleStatus.COMPLETED
        assert sale_service.require_sale("sale-emi").status is SaleStatus.COMPLETED
        assert emi.schedule_state(receipt.details) is EmiState.COMPLETED
        assert person_service.require_person(sample_customer.id).balance == Decimal("100000")

        with pytest.raises(ScheduleAlreadyCompleteError):
            sale_service.record_emi_payment("sale-emi", cash=Decimal("10000"))

    def test_zero_payment_rejected(self, sale_service, emi_sale):
        with pytest.raises(InvalidAmountError):
            sale_service.record_emi_payment("sale-emi")

    def test_payment_on_full_sale_rejected(self, sale_service, sample_customer):
        sale_service.record_sale(
            customer_id=sample_customer.id,
            total_amount=Decimal("5000"),
            sale_type=SaleType.FULL_PAYMENT,
            payment_method=PaymentMethod.CASH,
            sale_id="s1",
        )
        with pytest.raises(ValidationError):
            sale_service.record_emi_payment("s1", cash=Decimal("100"))

    def test_payment_on_missing_sale(self, sale_service):
        with pytest.raises(NotFoundError):
            sale_service.record_emi_payment("ghost", cash=Decimal("100"))

    def test_payment_is_marked_on_schedule_and_balance(self, sale_service, emi_sale, sample_customer):
        receipt = sale_service.record_emi_payment("sale-emi", cash=Decimal("10000"), entry_id="pay-1")
        assert receipt.entry.status is TransactionStatus.COMPLETED
        assert receipt.entry.applied_to == {"emi_details/sale-emi", f"persons/{sample_customer.id}"}
        assert receipt.details.inflight_payment_ids == frozenset()

    def test_total_collected_equals_price_with_interest(
        self, sale_service, person_service, capital_service, sample_customer
    ):
        sale_service.record_sale(
            customer_id=sample_customer.id,
            total_amount=Decimal("120000"),
            sale_type=SaleType.EMI,
            cash=Decimal("20000"),
            down_payment=Decimal("20000"),
            interest_rate=Decimal("12"),
            installments_count=12,
            sale_date=date(2024, 1, 15),
            sale_id="s-int",
        )
        collected = Decimal("0")
        details = sale_service.get_emi_details("s-int")
        while details.remaining_installments > 0:
            due = emi.installment_due(details)
            collected += due
            details = sale_service.record_emi_payment("s-int", cash=due).details

        assert collected == Decimal("112000")
        assert details.pending_extra_balance == 0
        assert sale_service.require_sale("s-int").status is SaleStatus.COMPLETED
        assert person_service.require_person(sample_customer.id).balance == Decimal("132000")
        assert capital_service.balance(CapitalSource.CASH) == Decimal("132000")


class TestEmiPaymentCancellation:
    """Tests for cancel_emi_payment."""

    def test_cancel_last_payment_reopens_sale(
        self, sale_service, person_service, capital_service, emi_sale, sample_customer
    ):
        for i in range(10):
            sale_service.record_emi_payment("sale-emi", cash=Decimal("10000"), entry_id=f"pay-{i}")
        assert sale_service.require_sale("sale-emi").status is SaleStatus.COMPLETED

        receipt = sale_service.cancel_emi_payment("pay-9", cancel_date=date(2024, 12, 1))

        assert receipt.entry.id == "pay-9-reversal"
        assert receipt.entry.reverses == "pay-9"
        assert receipt.sale.status is SaleStatus.ACTIVE
        assert receipt.details.paid_installments == 9
        assert receipt.details.remaining_installments == 1
        assert sale_service.get_emi_details("sale-emi") == receipt.details
        assert sale_service.ledger.require_entry("pay-9").status is TransactionStatus.CANCELLED
        assert person_service.require_person(sample_customer.id).balance == Decimal("90000")
        assert capital_service.balance(CapitalSource.CASH) == Decimal("90000")
        assert [s.id for s, _ in sale_service.due_sales(date(2030, 1, 1))] == ["sale-emi"]

    def test_cancel_earlier_payment_replays_the_rest(self, sale_service, emi_sale):
        sale_service.record_emi_payment(
            "sale-emi", cash=Decimal("5000"), payment_date=date(2024, 2, 10), entry_id="pay-0"
        )
        sale_service.record_emi_payment(
            "sale-emi", cash=Decimal("15000"), payment_date=date(2024, 2, 15), entry_id="pay-1"
        )
        sale_service.record_emi_payment(
            "sale-emi", cash=Decimal("10000"), payment_date=date(2024, 4, 15), entry_id="pay-2"
        )
        assert sale_service.get_emi_details("sale-emi").paid_installments == 3

        details = sale_service.cancel_emi_payment("pay-1").details

        # 5000 + 10000 against 10000 installments
        assert details.paid_installments == 1
        assert details.pending_extra_balance == Decimal("5000")
        assert details.next_due_date == date(2024, 3, 15)
        assert details.last_paid_date == date(2024, 4, 15)
        assert emi.amount_to_clear_current(details) == Decimal("5000")

    def test_cancel_twice_changes_nothing(self, sale_service, person_service, emi_sale, sample_customer):
        sale_service.record_emi_payment("sale-emi", cash=Decimal("10000"), entry_id="pay-0")
        sale_service.record_emi_payment("sale-emi", cash=Decimal("10000"), entry_id="pay-1")

        first = sale_service.cancel_emi_payment("pay-1")
        second = sale_service.cancel_emi_payment("pay-1")

        assert first.entry.id == second.entry.id
        assert second.details == first.details
        assert second.details.paid_installments == 1
        assert person_service.require_person(sample_customer.id).balance == Decimal("10000")

    def test_payment_after_cancellation_completes_again(self, sale_service, emi_sale):
        for i in range(10):
            sale_service.record_emi_payment("sale-emi", cash=Decimal("10000"), entry_id=f"pay-{i}")
        sale_service.cancel_emi_payment("pay-3")

        receipt = sale_service.record_emi_payment("sale-emi", cash=Decimal("10000"), entry_id="pay-10")
        assert receipt.entry.description == "EMI Payment - Installment 10/10"
        assert receipt.sale.status is SaleStatus.COMPLETED

    def test_cancel_rejects_other_entries(self, sale_service, sample_customer):
        sale_service.record_sale(
            customer_id=sample_customer.id,
            total_amount=Decimal("5000"),
            sale_type=SaleType.FULL_PAYMENT,
            payment_method=PaymentMethod.CASH,
            sale_id="s1",
        )
        with pytest.raises(ConflictError):
            sale_service.cancel_emi_payment("s1-payment")

    def test_cancel_missing_payment(self, sale_service):
        with pytest.raises(NotFoundError):
            sale_service.cancel_emi_payment("ghost")

    def test_ledger_cancel_refers_emi_payments_to_sale(self, sale_service, emi_sale):
        sale_service.record_emi_payment("sale-emi", cash=Decimal("10000"), entry_id="pay-0")
        with pytest.raises(ConflictError):
            sale_service.ledger.cancel("pay-0")
        assert sale_service.get_emi_details("sale-emi").paid_installments == 1


class TestDueSales:
    """Tests for due_sales."""

    def test_due_on_or_before_date(self, sale_service, emi_sale):
        assert sale_service.due_sales(date(2024, 2, 14)) == []
        due = sale_service.due_sales(date(2024, 2, 15))
        assert [sale.id for sale, _ in due] == ["sale-emi"]

    def test_paid_installment_moves_due_date(self, sale_service, emi_sale):
        sale_service.record_emi_payment("sale-emi", cash=Decimal("10000"))
        assert sale_service.due_sales(date(2024, 2, 20)) == []

    def test_completed_sales_not_due(self, sale_service, person_service, sample_customer):
        sale_service.record_sale(
            customer_id=sample_customer.id,
            total_amount=Decimal("1000"),
            sale_type=SaleType.EMI,
            installments_count=1,
            sale_date=date(2024, 1, 1),
            sale_id="short",
        )
        sale_service.record_emi_payment("short", cash=Decimal("1000"))
        assert sale_service.due_sales(date(2030, 1, 1)) == []

    def test_list_sales_for_customer(self, sale_service, person_service, emi_sale, sample_customer):
        other = person_service.register(PersonType.CUSTOMER, "Other")
        assert [s.id for s in sale_service.list_sales(sample_customer.id)] == ["sale-emi"]
        assert sale_service.list_sales(other) == []
