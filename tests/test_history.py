"""Tests for the transaction query service."""

import pytest
from datetime import date
from decimal import Decimal

from dealerledger.database.base import TRANSACTIONS
from dealerledger.domain.entities import (
    PaymentMethod,
    PersonType,
    RelatedRef,
    TransactionKind,
)
from dealerledger.domain.errors import LoadError, ValidationError
from dealerledger.domain.history import TransactionQueryService
from dealerledger.domain.ledger import create_entry
from dealerledger.domain.payment_split import single_method_split


def post(ledger_service, entry_id, entry_date, kind=TransactionKind.SALE, related_ref=None, person_id="cust-1"):
    return ledger_service.post(
        create_entry(
            kind=kind,
            person_id=person_id,
            person_type=PersonType.CUSTOMER,
            amount=Decimal("100"),
            split=single_method_split(PaymentMethod.CASH, Decimal("100")),
            entry_date=entry_date,
            related_ref=related_ref,
            entry_id=entry_id,
        )
    )


def test_history_empty(history_service, sample_customer):
    assert history_service.history(sample_customer.id) == []


def test_history_newest_first(history_service, ledger_service, sample_customer):
    post(ledger_service, "old", date(2024, 1, 1))
    post(ledger_service, "new", date(2024, 3, 1))
    post(ledger_service, "mid", date(2024, 2, 1))

    ids = [e.id for e in history_service.history(sample_customer.id)]
    assert ids == ["new", "mid", "old"]


def test_history_same_date_ordered_by_creation(history_service, ledger_service, sample_customer):
    post(ledger_service, "first", date(2024, 1, 1))
    post(ledger_service, "second", date(2024, 1, 1))

    ids = [e.id for e in history_service.history(sample_customer.id)]
    assert ids == ["second", "first"]


def test_history_only_for_person(history_service, ledger_service, person_service, sample_customer):
    post(ledger_service, "mine", date(2024, 1, 1))
    other = person_service.register(PersonType.CUSTOMER, "Other")
    assert history_service.history(other) == []


def test_entries_for_related_and_kind(history_service, ledger_service, sample_customer):
    ref = RelatedRef("sales", "s1")
    post(ledger_service, "a", date(2024, 1, 1), related_ref=ref)
    post(ledger_service, "b", date(2024, 1, 2), kind=TransactionKind.EMI_PAYMENT, related_ref=ref)
    post(ledger_service, "c", date(2024, 1, 3))

    assert [e.id for e in history_service.entries_for_related(ref)] == ["b", "a"]
    assert [e.id for e in history_service.entries_by_kind(TransactionKind.EMI_PAYMENT)] == ["b"]


class FailingStore:
    """Store whose reads always fail."""

    def query(self, collection, filters=None, order=None):
        raise OSError("disk unavailable")


def test_store_failure_raises_load_error():
    service = TransactionQueryService(FailingStore())
    with pytest.raises(LoadError) as exc_info:
        service.history("cust-1")
    assert isinstance(exc_info.value.cause, OSError)


def test_history_reads_are_repeatable(history_service, ledger_service, temp_db, sample_customer):
    post(ledger_service, "a", date(2024, 1, 1))
    assert history_service.history(sample_customer.id) == history_service.history(sample_customer.id)
    assert len(temp_db.query(TRANSACTIONS)) == 1


class TestHistoryWindow:
    """Tests for date ranges and limits."""

    @pytest.fixture
    def three_months(self, ledger_service, sample_customer):
        post(ledger_service, "jan", date(2024, 1, 10))
        post(ledger_service, "feb", date(2024, 2, 10))
        post(ledger_service, "mar", date(2024, 3, 10))
        return sample_customer.id

    def test_range_is_inclusive(self, history_service, three_months):
        entries = history_service.history(
            three_months, start_date=date(2024, 1, 10), end_date=date(2024, 2, 10)
        )
        assert [e.id for e in entries] == ["feb", "jan"]

    def test_open_ended_range(self, history_service, three_months):
        assert [e.id for e in history_service.history(three_months, start_date=date(2024, 2, 1))] == [
            "mar",
            "feb",
        ]
        assert [e.id for e in history_service.history(three_months, end_date=date(2024, 1, 31))] == ["jan"]

    def test_limit_keeps_newest(self, history_service, three_months):
        assert [e.id for e in history_service.history(three_months, limit=2)] == ["mar", "feb"]

    def test_reversed_range_rejected(self, history_service, three_months):
        with pytest.raises(ValidationError):
            history_service.history(three_months, start_date=date(2024, 3, 1), end_date=date(2024, 1, 1))

    def test_limit_below_one_rejected(self, history_service, three_months):
        with pytest.raises(ValidationError):
            history_service.history(three_months, limit=0)


def test_entries_between_spans_persons(history_service, ledger_service, person_service, sample_customer):
    person_service.register(PersonType.CUSTOMER, "Other", person_id="cust-2")
    post(ledger_service, "a", date(2024, 1, 5))
    post(ledger_service, "b", date(2024, 1, 20), person_id="cust-2")
    post(ledger_service, "c", date(2024, 2, 5))

    entries = history_service.entries_between(date(2024, 1, 1), date(2024, 1, 31))
    assert [e.id for e in entries] == ["b", "a"]


def test_recent_entries_by_recording_order(history_service, ledger_service, person_service, sample_customer):
    person_service.register(PersonType.CUSTOMER, "Other", person_id="cust-2")
    # Backdated entry recorded last still counts as most recent
    post(ledger_service, "a", date(2024, 3, 1))
    post(ledger_service, "b", date(2024, 3, 2), person_id="cust-2")
    post(ledger_service, "c", date(2024, 1, 1))

    assert [e.id for e in history_service.recent_entries(limit=2)] == ["c", "b"]
    with pytest.raises(ValidationError):
        history_service.recent_entries(limit=0)
