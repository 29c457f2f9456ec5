"""
Tests for sales order pricing, numbering and the status lifecycle.
"""
from datetime import datetime
from decimal import Decimal
import pytest
from app.extensions import db
from app.exceptions import ValidationError, NotFoundError, InsufficientStockError, InvalidStateError
from app.models import Customer, StockRecord, LedgerEntry, SalesOrder
from app.services.inventory_service import InventoryService
from app.services.sales_service import SalesService
from tests.conftest import TENANT_ID, OTHER_TENANT_ID, OPERATOR_ID


def _on_hand(sku, warehouse):
    summary = InventoryService.get_sku_inventory(TENANT_ID, sku.id)
    rows = [r for r in summary['items'] if r['warehouse_id'] == warehouse.id]
    return sum(r['quantity'] for r in rows), sum(r['locked_qty'] for r in rows)


def _order(customer, warehouse, *lines):
    return SalesService.create_order(
        TENANT_ID, customer.id, warehouse.id,
        [{'sku_id': sku.id, 'quantity': qty} for sku, qty in lines]
    )


# ============== 定价 ==============

@pytest.mark.parametrize('tier, expected', [
    (Customer.TIER_NORMAL, Decimal('10.00')),
    (Customer.TIER_SILVER, Decimal('9.80')),
    (Customer.TIER_GOLD, Decimal('9.50')),
    (Customer.TIER_VIP, Decimal('9.00')),
])
def test_unit_price_follows_customer_tier(tier, expected):
    assert SalesService.get_unit_price(Decimal('10.00'), tier) == expected


def test_unit_price_rounds_half_up_and_treats_missing_price_as_zero():
    assert SalesService.get_unit_price(Decimal('2.45'), Customer.TIER_GOLD) == Decimal('2.33')
    assert SalesService.get_unit_price(None, Customer.TIER_VIP) == Decimal('0.00')


def test_create_order_freezes_prices_and_total(sku, second_sku, warehouse, make_customer):
    gold = make_customer(Customer.TIER_GOLD)

    order = _order(gold, warehouse, (sku, 3), (second_sku, 10))

    assert order.status == SalesOrder.STATUS_PENDING
    assert order.currency == 'EUR'
    assert [item.unit_price for item in order.items] == [Decimal('9.50'), Decimal('2.28')]
    assert order.total_amount == Decimal('51.30')
    assert [item.subtotal for item in order.items] == [Decimal('28.50'), Decimal('22.80')]

    sku.wholesale_price = Decimal('99.00')
    db.session.commit()
    assert SalesService.get_order(TENANT_ID, order.id).items[0].unit_price == Decimal('9.50')


def test_create_order_does_not_touch_inventory(sku, warehouse, customer, stock):
    stock(sku, warehouse, 5)

    _order(customer, warehouse, (sku, 50))

    assert _on_hand(sku, warehouse) == (5, 0)
    assert LedgerEntry.query.filter_by(type=LedgerEntry.TYPE_LOCK).count() == 0


def test_create_order_validates_input(sku, warehouse, customer, make_customer):
    with pytest.raises(ValidationError):
        SalesService.create_order(TENANT_ID, customer.id, warehouse.id, [])
    with pytest.raises(ValidationError):
        _order(customer, warehouse, (sku, 0))
    with pytest.raises(ValidationError):
        _order(make_customer(is_active=False), warehouse, (sku, 1))
    with pytest.raises(NotFoundError):
        SalesService.create_order(TENANT_ID, customer.id, warehouse.id, [{'sku_id': 999, 'quantity': 1}])
    with pytest.raises(NotFoundError):
        _order(make_customer(tenant_id=OTHER_TENANT_ID), warehouse, (sku, 1))

    assert SalesOrder.query.count() == 0


# ============== 订单号 ==============

def test_order_numbers_are_sequential_per_tenant_and_day(app):
    day = datetime(2026, 10, 19, 8, 30)

    assert SalesService.generate_order_number(TENANT_ID, now=day) == 'SO-20261019-0001'
    assert SalesService.generate_order_number(TENANT_ID, now=day) == 'SO-20261019-0002'
    assert SalesService.generate_order_number(OTHER_TENANT_ID, now=day) == 'SO-20261019-0001'
    assert SalesService.generate_order_number(TENANT_ID, now=datetime(2026, 10, 20)) == 'SO-20261020-0001'


def test_created_orders_get_distinct_numbers(sku, warehouse, customer):
    first = _order(customer, warehouse, (sku, 1))
    second = _order(customer, warehouse, (sku, 1))

    assert first.order_number != second.order_number
    assert first.order_number.endswith('-0001')
    assert second.order_number.endswith('-0002')


# ============== 状态流转 ==============

def test_confirm_then_fulfill_consumes_lock(sku, warehouse, customer, stock):
    stock(sku, warehouse, 50)
    order = _order(customer, warehouse, (sku, 10))

    SalesService.confirm_order(TENANT_ID, OPERATOR_ID, order.id)
    assert _on_hand(sku, warehouse) == (50, 10)

    order = SalesService.fulfill_order(TENANT_ID, OPERATOR_ID, order.id)
    assert order.status == SalesOrder.STATUS_COMPLETED
    assert order.shipped_at is not None
    assert order.items[0].picked_qty == 10
    assert _on_hand(sku, warehouse) == (40, 0)

    entries = LedgerEntry.query.filter(LedgerEntry.type != LedgerEntry.TYPE_INBOUND) \
        .order_by(LedgerEntry.id.asc()).all()
    assert [(e.type, e.quantity) for e in entries] == [('LOCK', 10), ('OUTBOUND', -10)]
    assert all(e.reference_type == 'SO' and e.reference_id == str(order.id) for e in entries)
    assert entries[1].notes == f"Sales order {order.order_number}"


def test_cancel_confirmed_order_releases_lock(sku, warehouse, customer, stock):
    stock(sku, warehouse, 50)
    order = _order(customer, warehouse, (sku, 10))
    SalesService.confirm_order(TENANT_ID, OPERATOR_ID, order.id)

    order = SalesService.cancel_order(TENANT_ID, OPERATOR_ID, order.id)

    assert order.status == SalesOrder.STATUS_CANCELLED
    assert _on_hand(sku, warehouse) == (50, 0)
    unlock = LedgerEntry.query.filter_by(type=LedgerEntry.TYPE_UNLOCK).one()
    assert unlock.quantity == -10


def test_cancel_pending_order_writes_no_ledger(sku, warehouse, customer):
    order = _order(customer, warehouse, (sku, 10))

    SalesService.cancel_order(TENANT_ID, OPERATOR_ID, order.id)

    assert LedgerEntry.query.count() == 0


def test_confirm_with_insufficient_stock_keeps_order_pending(sku, warehouse, customer, stock):
    stock(sku, warehouse, 5)
    order = _order(customer, warehouse, (sku, 10))

    with pytest.raises(InsufficientStockError):
        SalesService.confirm_order(TENANT_ID, OPERATOR_ID, order.id)

    assert SalesService.get_order(TENANT_ID, order.id).status == SalesOrder.STATUS_PENDING
    assert _on_hand(sku, warehouse) == (5, 0)


def test_confirm_failure_on_later_line_leaves_no_partial_lock(sku, second_sku, warehouse, customer, stock):
    stock(sku, warehouse, 20)
    stock(second_sku, warehouse, 1)
    order = _order(customer, warehouse, (sku, 10), (second_sku, 2))

    with pytest.raises(InsufficientStockError):
        SalesService.confirm_order(TENANT_ID, OPERATOR_ID, order.id)

    assert _on_hand(sku, warehouse) == (20, 0)
    assert LedgerEntry.query.filter_by(type=LedgerEntry.TYPE_LOCK).count() == 0
    assert SalesService.get_order(TENANT_ID, order.id).status == SalesOrder.STATUS_PENDING


def test_fulfill_after_lock_moved_between_bins_keeps_invariants(sku, warehouse, bins, customer, stock):
    stock(sku, warehouse, 30, bins['A-01-01'])
    stock(sku, warehouse, 50, bins['B-02-01'])
    order = _order(customer, warehouse, (sku, 60))
    SalesService.confirm_order(TENANT_ID, OPERATOR_ID, order.id)

    SalesService.fulfill_order(TENANT_ID, OPERATOR_ID, order.id)

    for record in StockRecord.query.all():
        assert 0 <= record.locked_qty <= record.quantity
    assert _on_hand(sku, warehouse) == (20, 0)


@pytest.mark.parametrize('action', ['confirm_order', 'cancel_order', 'fulfill_order'])
def test_terminal_orders_reject_transitions(sku, warehouse, customer, action):
    order = _order(customer, warehouse, (sku, 1))
    SalesService.cancel_order(TENANT_ID, OPERATOR_ID, order.id)

    with pytest.raises(InvalidStateError) as exc:
        getattr(SalesService, action)(TENANT_ID, OPERATOR_ID, order.id)
    assert exc.value.payload == {'status': SalesOrder.STATUS_CANCELLED}


def test_fulfill_requires_confirmation(sku, warehouse, customer, stock):
    stock(sku, warehouse, 5)
    order = _order(customer, warehouse, (sku, 1))

    with pytest.raises(InvalidStateError):
        SalesService.fulfill_order(TENANT_ID, OPERATOR_ID, order.id)
    assert _on_hand(sku, warehouse) == (5, 0)


def test_fulfillment_stages_in_order(sku, warehouse, customer, stock):
    stock(sku, warehouse, 5)
    order = _order(customer, warehouse, (sku, 2))

    with pytest.raises(InvalidStateError):
        SalesService.set_fulfillment_stage(TENANT_ID, order.id, SalesOrder.STATUS_PICKING)

    SalesService.confirm_order(TENANT_ID, OPERATOR_ID, order.id)
    with pytest.raises(InvalidStateError):
        SalesService.set_fulfillment_stage(TENANT_ID, order.id, SalesOrder.STATUS_PACKED)
    with pytest.raises(ValidationError):
        SalesService.set_fulfillment_stage(TENANT_ID, order.id, SalesOrder.STATUS_COMPLETED)

    SalesService.set_fulfillment_stage(TENANT_ID, order.id, SalesOrder.STATUS_PICKING)
    order = SalesService.set_fulfillment_stage(TENANT_ID, order.id, SalesOrder.STATUS_PACKED)
    assert order.status == SalesOrder.STATUS_PACKED
    assert _on_hand(sku, warehouse) == (5, 2)

    with pytest.raises(InvalidStateError):
        SalesService.cancel_order(TENANT_ID, OPERATOR_ID, order.id)
    assert SalesService.fulfill_order(TENANT_ID, OPERATOR_ID, order.id).status == SalesOrder.STATUS_COMPLETED


def test_update_order_only_while_pending(sku, warehouse, customer, stock):
    stock(sku, warehouse, 5)
    order = _order(customer, warehouse, (sku, 1))

    order = SalesService.update_order(TENANT_ID, order.id, notes='加急', currency='USD')
    assert (order.notes, order.currency) == ('加急', 'USD')

    SalesService.confirm_order(TENANT_ID, OPERATOR_ID, order.id)
    with pytest.raises(InvalidStateError):
        SalesService.update_order(TENANT_ID, order.id, notes='改不了')


def test_orders_are_tenant_scoped(sku, warehouse, customer):
    order = _order(customer, warehouse, (sku, 1))

    with pytest.raises(NotFoundError):
        SalesService.get_order(OTHER_TENANT_ID, order.id)
    assert SalesService.list_orders(OTHER_TENANT_ID).total == 0
    assert SalesService.list_orders(TENANT_ID, status=SalesOrder.STATUS_PENDING).total == 1
