"""Pytest fixtures for the engine, checkout flow, orchestrator and stores."""

import pytest

from orderflow.catalog import ProductCatalogue
from orderflow.config import load_config
from orderflow.database.postgres import PostgresDB
from orderflow.database.redis import RedisCache
from orderflow.engine.engine import FlowEngine
from orderflow.flows import build_registry
from orderflow.orchestrator import OrderOrchestrator


@pytest.fixture
def cfg():
    return load_config()


@pytest.fixture
def catalogue(cfg):
    return ProductCatalogue.from_config(cfg)


@pytest.fixture
def engine(cfg, catalogue):
    return FlowEngine(build_registry(cfg, catalogue))


@pytest.fixture
def db():
    """In-memory PostgresDB stub for tests."""
    return PostgresDB()


@pytest.fixture
def drafts():
    return RedisCache()


@pytest.fixture
def orchestrator(db, engine, drafts):
    return OrderOrchestrator(db, engine, drafts=drafts)


@pytest.fixture
def checkout_payloads():
    """Valid payload for every checkout step, in order."""
    return [
        ("customer_details", {"full_name": "Jane Doe", "email": "Jane@Example.com", "phone_number": "+44 20 7946 0958"}),
        ("line_items", {"items": [{"sku": "MUG-001", "quantity": 2}, {"sku": "KETTLE-01", "quantity": 1}]}),
        ("delivery", {"delivery_method": "standard", "address": "1 High Street", "city": "Bristol", "postal_code": "BS1 4DJ"}),
        ("payment_method", {"payment_method": "card"}),
        ("review", {"confirm": True}),
    ]
