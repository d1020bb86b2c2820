"""Tests for balance aggregation."""

import pytest
from dataclasses import replace
from datetime import date
from decimal import Decimal

from dealerledger.database.base import PERSONS
from dealerledger.domain.balance import fold_balance, signed_contribution
from dealerledger.domain.entities import (
    PaymentMethod,
    PersonType,
    TransactionKind,
    TransactionStatus,
)
from dealerledger.domain.errors import BalanceDriftError, NotFoundError, ValidationError
from dealerledger.domain.ledger import create_entry
from dealerledger.domain.payment_split import single_method_split


def entry(kind, amount, person_id="cust-1", entry_id=None):
    return create_entry(
        kind=kind,
        person_id=person_id,
        person_type=PersonType.CUSTOMER,
        amount=Decimal(amount),
        split=single_method_split(PaymentMethod.CASH, Decimal(amount)),
        entry_date=date(2024, 3, 1),
        entry_id=entry_id,
    )


@pytest.mark.parametrize(
    "kind,expected",
    [
        (TransactionKind.SALE, Decimal("100")),
        (TransactionKind.EMI_PAYMENT, Decimal("100")),
        (TransactionKind.PURCHASE, Decimal("-100")),
        (TransactionKind.BROKER_FEE, Decimal("-100")),
    ],
)
def test_sign_table(kind, expected):
    assert signed_contribution(entry(kind, "100")) == expected


def test_reversal_negates_contribution():
    original = entry(TransactionKind.PURCHASE, "100", entry_id="p")
    reversal = replace(original, id="p-reversal", reverses="p")
    assert signed_contribution(reversal) == Decimal("100")


def test_pending_contributes_nothing():
    pending = replace(entry(TransactionKind.SALE, "100"), status=TransactionStatus.PENDING)
    assert signed_contribution(pending) == 0


def test_fold_balance_adds_opening():
    entries = [entry(TransactionKind.SALE, "500"), entry(TransactionKind.PURCHASE, "200")]
    assert fold_balance(Decimal("-50"), entries) == Decimal("250")


class TestBalanceAggregator:
    """Tests for BalanceAggregator."""

    def test_apply_updates_balance(self, temp_db, ledger_service, sample_customer):
        e = ledger_service.record(entry(TransactionKind.SALE, "700", entry_id="e1"))
        person = ledger_service.balances.apply(sample_customer.id, e)
        assert person.balance == Decimal("700")
        # The marker lives on the entry; the person keeps no per-entry ids
        assert person.inflight_entry_ids == frozenset()
        assert f"{PERSONS}/{sample_customer.id}" in ledger_service.require_entry("e1").applied_to
        assert temp_db.get(PERSONS, sample_customer.id).data["inFlightEntryIds"] == []

    def test_apply_same_entry_twice_is_noop(self, ledger_service, person_service, sample_customer):
        e = ledger_service.record(entry(TransactionKind.SALE, "700", entry_id="e1"))
        ledger_service.balances.apply(sample_customer.id, e)
        ledger_service.balances.apply(sample_customer.id, e)
        assert person_service.require_person(sample_customer.id).balance == Decimal("700")

    def test_apply_unrecorded_entry_raises(self, ledger_service, person_service, sample_customer):
        with pytest.raises(NotFoundError):
            ledger_service.balances.apply(
                sample_customer.id, entry(TransactionKind.SALE, "700", entry_id="never-stored")
            )
        assert person_service.require_person(sample_customer.id).balance == 0

    def test_apply_finishes_after_interrupted_acknowledgement(
        self, temp_db, ledger_service, person_service, sample_customer
    ):
        e = ledger_service.record(entry(TransactionKind.SALE, "700", entry_id="e1"))
        # Balance absorbed the entry but the entry was never marked
        document = temp_db.get(PERSONS, sample_customer.id)
        temp_db.put(
            PERSONS,
            sample_customer.id,
            {**document.data, "balance": "700", "inFlightEntryIds": ["e1"]},
            expected_version=document.version,
        )

        person = ledger_service.balances.apply(sample_customer.id, e)
        assert person.balance == Decimal("700")
        assert person.inflight_entry_ids == frozenset()
        assert f"{PERSONS}/{sample_customer.id}" in ledger_service.require_entry("e1").applied_to

    def test_pending_entry_is_not_applied(self, ledger_service, sample_customer):
        e = ledger_service.record(
            replace(entry(TransactionKind.SALE, "700", entry_id="e1"), status=TransactionStatus.PENDING)
        )
        person = ledger_service.balances.apply(sample_customer.id, e)
        assert person.balance == 0
        assert ledger_service.require_entry("e1").applied_to == frozenset()

    def test_apply_rejects_other_persons_entry(self, ledger_service, sample_customer):
        with pytest.raises(ValidationError):
            ledger_service.balances.apply(
                sample_customer.id, entry(TransactionKind.SALE, "1", person_id="someone-else")
            )

    def test_apply_to_missing_person(self, ledger_service):
        with pytest.raises(NotFoundError):
            ledger_service.balances.apply("ghost", entry(TransactionKind.SALE, "1", person_id="ghost"))

    def test_balance_matches_fold_after_mixed_sequence(self, ledger_service, person_service):
        person_id = person_service.register(
            PersonType.CUSTOMER, "Anil", opening_balance=Decimal("-1500"), person_id="cust-1"
        )
        for i, (kind, amount) in enumerate(
            [
                (TransactionKind.SALE, "50000"),
                (TransactionKind.EMI_PAYMENT, "8000"),
                (TransactionKind.PURCHASE, "30000"),
                (TransactionKind.BROKER_FEE, "500"),
            ]
        ):
            ledger_service.post(entry(kind, amount, entry_id=f"e{i}"))
        ledger_service.cancel("e2")

        check = ledger_service.balances.verify(person_id)
        assert check.is_consistent
        assert check.stored == Decimal("-1500") + 50000 + 8000 - 500

    def test_verify_raises_on_drift(self, temp_db, ledger_service, sample_customer):
        ledger_service.post(entry(TransactionKind.SALE, "1000", entry_id="e1"))

        # Simulate a stored balance written outside the ledger
        document = temp_db.get(PERSONS, sample_customer.id)
        temp_db.put(PERSONS, sample_customer.id, {**document.data, "balance": "999"})

        check = ledger_service.balances.recompute(sample_customer.id)
        assert check.drift == Decimal("-1")
        with pytest.raises(BalanceDriftError) as exc_info:
            ledger_service.balances.verify(sample_customer.id)
        assert exc_info.value.expected == Decimal("1000")
        assert exc_info.value.stored == Decimal("999")
