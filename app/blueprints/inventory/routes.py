"""库存接口 - 库存查询、流水查询与六类库存操作"""
from flask import jsonify, request
from app.blueprints.inventory import inventory_bp
from app.blueprints.inventory.forms import (
    StockMovementForm, StockAdjustmentForm, StockTransferForm, StockLockForm, LedgerFilterForm
)
from app.services.inventory_service import InventoryService
from app.utils.decorators import tenant_context
from app.utils.pagination import page_args, paginated
from app.utils.validators import json_body, validate_form


def _ok(data, status=200):
    return jsonify({'success': True, 'data': data}), status


@inventory_bp.route('', methods=['GET'])
@tenant_context
def index(tenant_id, operator_id):
    """库存记录列表（可按 SKU / 仓库筛选）"""
    page, per_page = page_args()
    pagination = InventoryService.list_inventory(
        tenant_id,
        sku_id=request.args.get('sku_id', type=int),
        warehouse_id=request.args.get('warehouse_id', type=int),
        page=page, per_page=per_page
    )
    return _ok(paginated(pagination))


@inventory_bp.route('/sku/<int:sku_id>', methods=['GET'])
@tenant_context
def sku_summary(sku_id, tenant_id, operator_id):
    """SKU 库存汇总"""
    return _ok(InventoryService.get_sku_inventory(tenant_id, sku_id))


@inventory_bp.route('/ledger', methods=['GET'])
@tenant_context
def ledger(tenant_id, operator_id):
    """库存流水查询"""
    form = validate_form(LedgerFilterForm, request.args.to_dict())
    page, per_page = page_args()
    pagination = InventoryService.get_ledger(
        tenant_id,
        sku_id=form.sku_id.data,
        warehouse_id=form.warehouse_id.data,
        ledger_type=form.type.data or None,
        start=form.start_date.data,
        end=form.end_date.data,
        page=page, per_page=per_page
    )
    return _ok(paginated(pagination))


@inventory_bp.route('/reconcile', methods=['GET'])
@tenant_context
def reconcile(tenant_id, operator_id):
    """流水与库存对账"""
    mismatches = InventoryService.reconcile(
        tenant_id,
        sku_id=request.args.get('sku_id', type=int),
        warehouse_id=request.args.get('warehouse_id', type=int)
    )
    return _ok({'balanced': not mismatches, 'mismatches': mismatches})


@inventory_bp.route('/inbound', methods=['POST'])
@tenant_context
def inbound(tenant_id, operator_id):
    """入库"""
    form = validate_form(StockMovementForm, json_body())
    return _ok(InventoryService.inbound(tenant_id, operator_id, **_movement_args(form)))


@inventory_bp.route('/return', methods=['POST'])
@tenant_context
def return_stock(tenant_id, operator_id):
    """退货入库"""
    form = validate_form(StockMovementForm, json_body())
    return _ok(InventoryService.return_stock(tenant_id, operator_id, **_movement_args(form)))


@inventory_bp.route('/outbound', methods=['POST'])
@tenant_context
def outbound(tenant_id, operator_id):
    """出库"""
    form = validate_form(StockMovementForm, json_body())
    return _ok(InventoryService.outbound(tenant_id, operator_id, **_movement_args(form)))


@inventory_bp.route('/adjust', methods=['POST'])
@tenant_context
def adjust(tenant_id, operator_id):
    """盘点调整"""
    form = validate_form(StockAdjustmentForm, json_body())
    return _ok(InventoryService.adjust(
        tenant_id, operator_id,
        sku_id=form.sku_id.data,
        warehouse_id=form.warehouse_id.data,
        quantity=form.quantity.data,
        bin_location_id=form.bin_location_id.data,
        notes=form.notes.data or None
    ))


@inventory_bp.route('/transfer', methods=['POST'])
@tenant_context
def transfer(tenant_id, operator_id):
    """调拨"""
    form = validate_form(StockTransferForm, json_body())
    return _ok(InventoryService.transfer(
        tenant_id, operator_id,
        sku_id=form.sku_id.data,
        from_warehouse_id=form.from_warehouse_id.data,
        to_warehouse_id=form.to_warehouse_id.data,
        quantity=form.quantity.data,
        from_bin_location_id=form.from_bin_location_id.data,
        to_bin_location_id=form.to_bin_location_id.data,
        notes=form.notes.data or None
    ))


@inventory_bp.route('/lock', methods=['POST'])
@tenant_context
def lock(tenant_id, operator_id):
    """锁定库存"""
    form = validate_form(StockLockForm, json_body())
    return _ok(InventoryService.lock_inventory(tenant_id, operator_id, **_lock_args(form)))


@inventory_bp.route('/unlock', methods=['POST'])
@tenant_context
def unlock(tenant_id, operator_id):
    """解锁库存"""
    form = validate_form(StockLockForm, json_body())
    return _ok(InventoryService.unlock_inventory(tenant_id, operator_id, **_lock_args(form)))


def _movement_args(form):
    return dict(
        sku_id=form.sku_id.data,
        warehouse_id=form.warehouse_id.data,
        quantity=form.quantity.data,
        bin_location_id=form.bin_location_id.data,
        reference_type=form.reference_type.data or None,
        reference_id=form.reference_id.data or None,
        notes=form.notes.data or None,
    )


def _lock_args(form):
    return dict(
        sku_id=form.sku_id.data,
        warehouse_id=form.warehouse_id.data,
        quantity=form.quantity.data,
        reference_type=form.reference_type.data or None,
        reference_id=form.reference_id.data or None,
    )
