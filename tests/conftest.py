"""Shared pytest fixtures: in-memory database, sample clients and API client."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sams.models import Account, Base, BillingConfig, BillingModule, Client, Unit


@pytest.fixture
def db_session():
    """Create test database session."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    engine.dispose()


def _add_client(
    db_session,
    code: str,
    name: str,
    start_month: int,
    dues_frequency: str,
    unit_codes: tuple[str, ...],
    monthly_dues: Decimal,
    water: bool = True,
) -> Client:
    client = Client(
        code=code,
        name=name,
        fiscal_year_start_month=start_month,
        dues_frequency=dues_frequency,
    )
    db_session.add(client)
    db_session.flush()
    for unit_code in unit_codes:
        db_session.add(
            Unit(
                client_id=client.id,
                unit_code=unit_code,
                owner_name=f"Owner {unit_code}",
                monthly_dues=monthly_dues,
            )
        )
    db_session.add(Account(client_id=client.id, name=f"{code} Bank", account_type="bank"))
    db_session.add(
        BillingConfig(
            client_id=client.id,
            module=BillingModule.HOA,
            penalty_rate=Decimal("0.05"),
            penalty_days=10,
        )
    )
    if water:
        db_session.add(
            BillingConfig(
                client_id=client.id,
                module=BillingModule.WATER,
                penalty_rate=Decimal("0.05"),
                penalty_days=10,
                rate_per_m3=Decimal("50.00"),
            )
        )
    db_session.commit()
    return client


@pytest.fixture
def mtc(db_session) -> Client:
    """Calendar fiscal year, monthly dues of 1000, HOA and water billing."""
    return _add_client(
        db_session,
        "MTC",
        "Marina Turquesa Condominiums",
        start_month=1,
        dues_frequency="monthly",
        unit_codes=("101", "102", "103"),
        monthly_dues=Decimal("1000.00"),
    )


@pytest.fixture
def avii(db_session) -> Client:
    """July fiscal year, quarterly dues, HOA billing only."""
    return _add_client(
        db_session,
        "AVII",
        "Aventuras Villas II",
        start_month=7,
        dues_frequency="quarterly",
        unit_codes=("1A", "1B"),
        monthly_dues=Decimal("1000.00"),
        water=False,
    )


@pytest.fixture
def api_client(db_session):
    """Create FastAPI test client bound to the test session."""
    from sams.api.app import app
    from sams.services.db import get_db

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
