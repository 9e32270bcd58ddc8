"""Shared test fixtures for all test modules."""

import contextlib
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import travelbooks.models  # noqa: F401
from travelbooks.core import database as db_module
from travelbooks.core.database import Base, get_db
from travelbooks.models.payment import PaymentStatus
from travelbooks.schemas.invoice import QuoteAcceptance, QuoteItemInput
from travelbooks.schemas.payment import PaymentConfirmation

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

AGENT_ID = "agent-001"


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """Create a database session for direct service and repository testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


def quote_item(
    quote_item_id: str,
    unit_price: str,
    supplier_cost: str,
    item_type: str | None = "hotel",
    travel_date: date | None = None,
    cancellation_policy: dict[str, Any] | None = None,
    quantity: str = "1",
) -> QuoteItemInput:
    """Build one accepted quote line."""
    return QuoteItemInput(
        quote_item_id=quote_item_id,
        description=f"Booking {quote_item_id}",
        quantity=Decimal(quantity),
        unit_price=Decimal(unit_price),
        supplier_cost=Decimal(supplier_cost),
        item_type=item_type,
        payment_source="api_hotelbeds",
        travel_date=travel_date,
        cancellation_policy=cancellation_policy,
    )


def quote_acceptance(
    quote_id: str = "Q-1001",
    items: list[QuoteItemInput] | None = None,
    tax_rate: str = "0",
    agent_id: str | None = AGENT_ID,
    **overrides: Any,
) -> QuoteAcceptance:
    """Build a quote acceptance with a single hotel line by default."""
    return QuoteAcceptance(
        quote_id=quote_id,
        customer_id="cust-42",
        customer_name="Ada Traveller",
        customer_email="ada@example.com",
        items=items or [quote_item("QI-1", "1000.00", "800.00")],
        tax_rate=Decimal(tax_rate),
        agent_id=agent_id,
        agent_name="Sam Agent" if agent_id else None,
        **overrides,
    )


def confirmation(
    invoice_id: UUID,
    amount: str,
    payment_intent_id: str = "pi_0001",
    status: PaymentStatus = PaymentStatus.COMPLETED,
    **overrides: Any,
) -> PaymentConfirmation:
    """Build a payment-processor confirmation event."""
    return PaymentConfirmation(
        payment_intent_id=payment_intent_id,
        invoice_id=invoice_id,
        amount=Decimal(amount),
        status=status,
        **overrides,
    )
