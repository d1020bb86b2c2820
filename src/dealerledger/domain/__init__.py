"""Domain layer for dealerledger application."""

from dealerledger.domain.person import PersonService
from dealerledger.domain.ledger import LedgerService
from dealerledger.domain.history import TransactionQueryService
from dealerledger.domain.sales import SaleService
from dealerledger.domain.purchases import PurchaseService
from dealerledger.domain.capital import CapitalService
from dealerledger.domain.transfers import TransferService

__all__ = [
    "PersonService",
    "LedgerService",
    "TransactionQueryService",
    "SaleService",
    "PurchaseService",
    "CapitalService",
    "TransferService",
]
