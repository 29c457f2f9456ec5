"""
Tests for the Flask CLI commands.
"""
from app.models import Warehouse, Sku, Customer, StockRecord, LedgerEntry
from app.services.inventory_service import InventoryService
from app.utils.fake_gen import fake
from tests.conftest import TENANT_ID, OPERATOR_ID


def test_fake_generator_produces_accessories():
    suffix, name = fake.accessory_sku()
    assert suffix.isupper()
    assert name

    zone, row, level = fake.bin_code().split('-')
    assert zone in ('A', 'B', 'C', 'D')
    assert 1 <= int(row) <= 20
    assert 1 <= int(level) <= 6


def test_status_on_empty_database(runner):
    result = runner.invoke(args=['status'])

    assert result.exit_code == 0
    assert '数据库为空' in result.output


def test_forge_seeds_consistent_data(runner):
    result = runner.invoke(args=['forge', '--tenant', str(TENANT_ID)])

    assert result.exit_code == 0, result.output
    assert Warehouse.query.count() == 3
    assert Sku.query.count() == 20
    assert {c.tier for c in Customer.query.all()} == set(Customer.TIERS)
    assert StockRecord.query.count() == LedgerEntry.query.count() > 0
    assert InventoryService.reconcile(TENANT_ID) == []

    status = runner.invoke(args=['status'])
    assert '数据库连接正常' in status.output


def test_reconcile_command_reports_mismatch(runner, sku, warehouse, stock):
    stock(sku, warehouse, 3)

    clean = runner.invoke(args=['reconcile', '--tenant', str(TENANT_ID)])
    assert clean.exit_code == 0
    assert '流水与库存一致' in clean.output

    InventoryService.adjust(TENANT_ID, OPERATOR_ID, sku.id, warehouse.id, -10)

    dirty = runner.invoke(args=['reconcile', '--tenant', str(TENANT_ID), '--sku', str(sku.id)])
    assert dirty.exit_code == 1
    assert '发现 1 处差异' in dirty.output
