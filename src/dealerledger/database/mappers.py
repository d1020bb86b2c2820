"""Mapper functions to convert between domain entities and stored documents.

This layer owns the persisted field names. Decimals are stored as strings and
dates as ISO-8601 strings so documents stay JSON-serializable.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from dealerledger.database.base import (
    APPLIED_TO,
    INFLIGHT_ENTRY_IDS,
    INFLIGHT_PAYMENT_IDS,
    Document,
)
from dealerledger.domain import entities as domain


def _money(value: Any) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def _money_or_none(value: Any) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


def _date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _ref(value: Optional[str]) -> Optional[domain.RelatedRef]:
    return domain.RelatedRef.parse(value) if value else None


def _ref_str(ref: Optional[domain.RelatedRef]) -> Optional[str]:
    return str(ref) if ref is not None else None


def person_to_document(person: domain.Person) -> dict[str, Any]:
    """Convert a Person entity to its stored shape."""
    return {
        "id": person.id,
        "personType": person.person_type.value,
        "name": person.name,
        "phone": person.phone,
        "address": person.address,
        "idProofType": person.id_proof_type,
        "idProofNumber": person.id_proof_number,
        "idProofImageUrls": list(person.id_proof_image_urls),
        "photoUrls": list(person.photo_urls),
        "balance": str(person.balance),
        "openingBalance": str(person.opening_balance),
        INFLIGHT_ENTRY_IDS: sorted(person.inflight_entry_ids),
        "createdAt": person.created_at.isoformat(),
    }


def person_to_domain(document: Document) -> domain.Person:
    """Convert a stored person document to a Person entity."""
    data = document.data
    return domain.Person(
        id=document.id,
        person_type=domain.PersonType.parse(data["personType"]),
        name=data.get("name", ""),
        balance=_money(data.get("balance")),
        created_at=_datetime(data.get("createdAt")),
        opening_balance=_money(data.get("openingBalance")),
        phone=data.get("phone", ""),
        address=data.get("address", ""),
        id_proof_type=data.get("idProofType", ""),
        id_proof_number=data.get("idProofNumber", ""),
        id_proof_image_urls=tuple(data.get("idProofImageUrls", [])),
        photo_urls=tuple(data.get("photoUrls", [])),
        inflight_entry_ids=frozenset(data.get(INFLIGHT_ENTRY_IDS, [])),
        version=document.version,
    )


def entry_to_document(entry: domain.LedgerEntry) -> dict[str, Any]:
    """Convert a LedgerEntry entity to the stored PersonTransaction shape."""
    return {
        "id": entry.id,
        "kind": entry.kind.value,
        "personRef": entry.person_id,
        "personType": entry.person_type.value,
        "relatedRef": _ref_str(entry.related_ref),
        "amount": str(entry.amount),
        "paymentMethod": entry.payment_method.value,
        "cashAmount": str(entry.cash_amount),
        "bankAmount": str(entry.bank_amount),
        "creditAmount": str(entry.credit_amount),
        "date": entry.date.isoformat(),
        "orderNumber": entry.order_number,
        "description": entry.description,
        "status": entry.status.value,
        "createdAt": entry.created_at.isoformat(),
        "reverses": entry.reverses,
        APPLIED_TO: sorted(entry.applied_to),
    }


def entry_to_domain(document: Document) -> domain.LedgerEntry:
    """Convert a stored PersonTransaction document to a LedgerEntry entity."""
    data = document.data
    return domain.LedgerEntry(
        id=document.id,
        kind=domain.TransactionKind.parse(data["kind"]),
        person_id=data["personRef"],
        person_type=domain.PersonType.parse(data["personType"]),
        amount=_money(data["amount"]),
        payment_method=domain.PaymentMethod.parse(data["paymentMethod"]),
        cash_amount=_money(data.get("cashAmount")),
        bank_amount=_money(data.get("bankAmount")),
        credit_amount=_money(data.get("creditAmount")),
        date=_date(data["date"]),
        status=domain.TransactionStatus.parse(data["status"]),
        created_at=_datetime(data["createdAt"]),
        related_ref=_ref(data.get("relatedRef")),
        order_number=data.get("orderNumber"),
        description=data.get("description", ""),
        reverses=data.get("reverses"),
        applied_to=frozenset(data.get(APPLIED_TO, [])),
    )


def sale_to_document(sale: domain.VehicleSale) -> dict[str, Any]:
    """Convert a VehicleSale entity to its stored shape."""
    return {
        "id": sale.id,
        "customerRef": sale.customer_id,
        "vehicleRef": _ref_str(sale.vehicle_ref),
        "purchaseType": sale.sale_type.value,
        "emi": sale.emi,
        "totalAmount": str(sale.total_amount),
        "downPayment": str(sale.down_payment),
        "status": sale.status.value,
        "emiDetailsRef": sale.emi_details_ref,
        "saleDate": sale.sale_date.isoformat(),
        "createdAt": sale.created_at.isoformat(),
    }


def sale_to_domain(document: Document) -> domain.VehicleSale:
    """Convert a stored sale document to a VehicleSale entity."""
    data = document.data
    return domain.VehicleSale(
        id=document.id,
        customer_id=data["customerRef"],
        sale_type=domain.SaleType.parse(data["purchaseType"]),
        total_amount=_money(data["totalAmount"]),
        down_payment=_money(data.get("downPayment")),
        status=domain.SaleStatus.parse(data["status"]),
        sale_date=_date(data["saleDate"]),
        created_at=_datetime(data["createdAt"]),
        vehicle_ref=_ref(data.get("vehicleRef")),
        emi_details_ref=data.get("emiDetailsRef"),
        version=document.version,
    )


def emi_details_to_document(details: domain.EmiDetails) -> dict[str, Any]:
    """Convert an EmiDetails entity to its stored shape."""
    return {
        "vehicleSaleRef": details.vehicle_sale_ref,
        "interestRate": str(details.interest_rate),
        "frequency": details.frequency.value,
        "installmentsCount": details.installments_count,
        "installmentAmount": str(details.installment_amount),
        "priceWithInterest": str(details.price_with_interest),
        "nextDueDate": details.next_due_date.isoformat(),
        "remainingInstallments": details.remaining_installments,
        "paidInstallments": details.paid_installments,
        "pendingExtraBalance": str(details.pending_extra_balance),
        "lastPaidDate": details.last_paid_date.isoformat() if details.last_paid_date else None,
        INFLIGHT_PAYMENT_IDS: sorted(details.inflight_payment_ids),
    }


def emi_details_to_domain(document: Document) -> domain.EmiDetails:
    """Convert a stored EMI document to an EmiDetails entity."""
    data = document.data
    return domain.EmiDetails(
        vehicle_sale_ref=data["vehicleSaleRef"],
        interest_rate=_money(data["interestRate"]),
        frequency=domain.EmiFrequency.parse(data["frequency"]),
        installments_count=int(data["installmentsCount"]),
        installment_amount=_money(data["installmentAmount"]),
        price_with_interest=_money(data["priceWithInterest"]),
        next_due_date=_date(data["nextDueDate"]),
        remaining_installments=int(data["remainingInstallments"]),
        paid_installments=int(data.get("paidInstallments", 0)),
        pending_extra_balance=_money(data.get("pendingExtraBalance")),
        last_paid_date=_date(data.get("lastPaidDate")),
        inflight_payment_ids=frozenset(data.get(INFLIGHT_PAYMENT_IDS, [])),
        version=document.version,
    )


def purchase_to_document(purchase: domain.Purchase) -> dict[str, Any]:
    """Convert a Purchase entity to its stored shape."""
    return {
        "id": purchase.id,
        "sellerRef": purchase.seller_id,
        "grandTotal": str(purchase.grand_total),
        "gstAmount": str(purchase.gst_amount),
        "orderNumber": purchase.order_number,
        "paymentMethod": purchase.payment_method.value,
        "cashAmount": str(purchase.cash_amount),
        "bankAmount": str(purchase.bank_amount),
        "creditAmount": str(purchase.credit_amount),
        "vehicleRef": _ref_str(purchase.vehicle_ref),
        "brokerRef": purchase.broker_id,
        "brokerFee": str(purchase.broker_fee) if purchase.broker_fee is not None else None,
        "createdAt": purchase.created_at.isoformat(),
    }


def purchase_to_domain(document: Document) -> domain.Purchase:
    """Convert a stored purchase document to a Purchase entity."""
    data = document.data
    return domain.Purchase(
        id=document.id,
        seller_id=data["sellerRef"],
        grand_total=_money(data["grandTotal"]),
        gst_amount=_money(data.get("gstAmount")),
        order_number=int(data["orderNumber"]),
        payment_method=domain.PaymentMethod.parse(data["paymentMethod"]),
        cash_amount=_money(data.get("cashAmount")),
        bank_amount=_money(data.get("bankAmount")),
        credit_amount=_money(data.get("creditAmount")),
        created_at=_datetime(data["createdAt"]),
        vehicle_ref=_ref(data.get("vehicleRef")),
        broker_id=data.get("brokerRef"),
        broker_fee=_money_or_none(data.get("brokerFee")),
        version=document.version,
    )


def capital_transaction_to_document(txn: domain.CapitalTransaction) -> dict[str, Any]:
    """Convert a CapitalTransaction entity to its stored shape."""
    return {
        "id": txn.id,
        "source": txn.source.value,
        "amount": str(txn.amount),
        "transactionDate": txn.transaction_date.isoformat(),
        "createdAt": txn.created_at.isoformat(),
        "reference": _ref_str(txn.reference),
        "orderNumber": txn.order_number,
        "description": txn.description,
    }


def capital_transaction_to_domain(document: Document) -> domain.CapitalTransaction:
    """Convert a stored capital document to a CapitalTransaction entity."""
    data = document.data
    return domain.CapitalTransaction(
        id=document.id,
        source=domain.CapitalSource.parse(data["source"]),
        amount=_money(data["amount"]),
        transaction_date=_date(data["transactionDate"]),
        created_at=_datetime(data["createdAt"]),
        reference=_ref(data.get("reference")),
        order_number=int(data.get("orderNumber") or 0),
        description=data.get("description", ""),
    )
