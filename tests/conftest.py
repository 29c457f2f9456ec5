"""
Pytest configuration and shared fixtures for the inventory core tests.
"""
from decimal import Decimal
import pytest
from app import create_app
from app.extensions import db
from app.models import Sku, Customer, Warehouse, BinLocation
from app.services.inventory_service import InventoryService

TENANT_ID = 1
OTHER_TENANT_ID = 2
OPERATOR_ID = 7


@pytest.fixture(scope='function')
def app():
    """Create a fresh app with an in-memory database for each test."""
    app = create_app('testing')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def headers():
    """Tenant/operator headers for API requests."""
    return {'X-Tenant-Id': str(TENANT_ID), 'X-Operator-Id': str(OPERATOR_ID)}


@pytest.fixture
def warehouse(app):
    wh = Warehouse(tenant_id=TENANT_ID, code='SZ-01', name='深圳主仓', address='深圳市龙华区')
    db.session.add(wh)
    db.session.commit()
    return wh


@pytest.fixture
def other_warehouse(app):
    wh = Warehouse(tenant_id=TENANT_ID, code='HK-01', name='香港转运仓')
    db.session.add(wh)
    db.session.commit()
    return wh


@pytest.fixture
def bins(warehouse):
    """Three bins in the main warehouse, keyed by code."""
    result = {}
    for code in ('B-02-01', 'A-01-01', 'A-01-02'):
        bin_location = BinLocation(tenant_id=TENANT_ID, warehouse_id=warehouse.id, code=code)
        db.session.add(bin_location)
        result[code] = bin_location
    db.session.commit()
    return result


@pytest.fixture
def sku(app):
    item = Sku(tenant_id=TENANT_ID, code='CASE-IP15-BLK', name='iPhone 15 硅胶保护壳 黑色',
               wholesale_price=Decimal('10.00'))
    db.session.add(item)
    db.session.commit()
    return item


@pytest.fixture
def second_sku(app):
    item = Sku(tenant_id=TENANT_ID, code='GLASS-S24', name='Galaxy S24 钢化膜',
               wholesale_price=Decimal('2.40'))
    db.session.add(item)
    db.session.commit()
    return item


@pytest.fixture
def make_customer(app):
    def _make(tier=Customer.TIER_NORMAL, is_active=True, tenant_id=TENANT_ID):
        customer = Customer(tenant_id=tenant_id, name=f'{tier} 客户', tier=tier, is_active=is_active)
        db.session.add(customer)
        db.session.commit()
        return customer
    return _make


@pytest.fixture
def customer(make_customer):
    return make_customer()


@pytest.fixture
def stock(app):
    """Post opening stock through the inbound operation so the ledger stays consistent."""
    def _stock(sku, warehouse, quantity, bin_location=None):
        return InventoryService.inbound(
            TENANT_ID, OPERATOR_ID, sku.id, warehouse.id, quantity,
            bin_location_id=bin_location.id if bin_location else None,
            reference_type='INIT'
        )
    return _stock
