"""Shared pytest fixtures for dealerledger tests."""

import tempfile
import os
from datetime import date
from decimal import Decimal
import pytest

from dealerledger.config import LedgerConfig
from dealerledger.database.factories import create_sqlite_database
from dealerledger.domain.capital import CapitalService
from dealerledger.domain.entities import PersonType
from dealerledger.domain.history import TransactionQueryService
from dealerledger.domain.ledger import LedgerService
from dealerledger.domain.person import PersonService
from dealerledger.domain.purchases import PurchaseService
from dealerledger.domain.sales import SaleService


@pytest.fixture
def temp_db():
    """Create a temporary document store for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def config():
    """Default configuration."""
    return LedgerConfig()


@pytest.fixture
def person_service(temp_db, config):
    """Create a PersonService with a temporary store."""
    return PersonService(temp_db, config)


@pytest.fixture
def ledger_service(temp_db, config):
    """Create a LedgerService with a temporary store."""
    return LedgerService(temp_db, config)


@pytest.fixture
def history_service(temp_db):
    """Create a TransactionQueryService with a temporary store."""
    return TransactionQueryService(temp_db)


@pytest.fixture
def sale_service(temp_db, config):
    """Create a SaleService with a temporary store."""
    return SaleService(temp_db, config)


@pytest.fixture
def purchase_service(temp_db, config):
    """Create a PurchaseService with a temporary store."""
    return PurchaseService(temp_db, config)


@pytest.fixture
def capital_service(temp_db):
    """Create a CapitalService with a temporary store."""
    return CapitalService(temp_db)


@pytest.fixture
def sample_customer(person_service):
    """Register a sample customer."""
    person_id = person_service.register(
        PersonType.CUSTOMER, "Ravi Kumar", phone="9876543210", person_id="cust-1"
    )
    return person_service.require_person(person_id)


@pytest.fixture
def sample_broker(person_service):
    """Register a sample broker."""
    person_id = person_service.register(PersonType.BROKER, "Suresh", person_id="broker-1")
    return person_service.require_person(person_id)


@pytest.fixture
def emi_sale(sale_service, sample_customer):
    """EMI sale of 100000 over 10 monthly installments with no interest."""
    from dealerledger.domain.entities import SaleType

    return sale_service.record_sale(
        customer_id=sample_customer.id,
        total_amount=Decimal("100000"),
        sale_type=SaleType.EMI,
        installments_count=10,
        sale_date=date(2024, 1, 15),
        sale_id="sale-emi",
    )


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
