"""销售订单接口 - 下单、状态流转与拣货单"""
from flask import jsonify, request
from app.blueprints.sales import sales_bp
from app.blueprints.sales.forms import (
    SalesOrderCreateForm, SalesOrderItemForm, SalesOrderUpdateForm, FulfillmentStageForm
)
from app.exceptions import ValidationError
from app.services.sales_service import SalesService
from app.services.picklist_service import PickListService
from app.utils.decorators import tenant_context
from app.utils.pagination import page_args, paginated
from app.utils.validators import json_body, validate_form


def _ok(data, status=200):
    return jsonify({'success': True, 'data': data}), status


@sales_bp.route('', methods=['GET'])
@tenant_context
def index(tenant_id, operator_id):
    """订单列表"""
    page, per_page = page_args()
    pagination = SalesService.list_orders(
        tenant_id,
        status=request.args.get('status') or None,
        customer_id=request.args.get('customer_id', type=int),
        page=page, per_page=per_page
    )
    return _ok(paginated(pagination))


@sales_bp.route('', methods=['POST'])
@tenant_context
def create(tenant_id, operator_id):
    """
    创建订单
    请求体: {"customer_id": 1, "warehouse_id": 1, "items": [{"sku_id": 1, "quantity": 2}]}
    """
    body = json_body()
    form = validate_form(SalesOrderCreateForm, body)

    lines = body.get('items')
    if not isinstance(lines, list) or not lines:
        raise ValidationError('Sales order requires at least one item', payload={'errors': {'items': ['至少添加一个商品']}})

    items_data = []
    for line in lines:
        if not isinstance(line, dict):
            raise ValidationError('Invalid item', payload={'errors': {'items': ['明细行格式错误']}})
        item_form = validate_form(SalesOrderItemForm, line)
        items_data.append({'sku_id': item_form.sku_id.data, 'quantity': item_form.quantity.data})

    order = SalesService.create_order(
        tenant_id,
        customer_id=form.customer_id.data,
        warehouse_id=form.warehouse_id.data,
        items_data=items_data,
        currency=form.currency.data or None,
        notes=form.notes.data or None
    )
    return _ok(order.to_dict(), 201)


@sales_bp.route('/<int:order_id>', methods=['GET'])
@tenant_context
def detail(order_id, tenant_id, operator_id):
    return _ok(SalesService.get_order(tenant_id, order_id).to_dict())


@sales_bp.route('/<int:order_id>', methods=['PATCH'])
@tenant_context
def update(order_id, tenant_id, operator_id):
    """修改表头（仅待确认订单）"""
    body = json_body()
    form = validate_form(SalesOrderUpdateForm, body)
    order = SalesService.update_order(
        tenant_id, order_id,
        notes=form.notes.data if 'notes' in body else None,
        currency=form.currency.data if 'currency' in body else None
    )
    return _ok(order.to_dict())


@sales_bp.route('/<int:order_id>/confirm', methods=['POST'])
@tenant_context
def confirm(order_id, tenant_id, operator_id):
    """确认订单并锁定库存"""
    return _ok(SalesService.confirm_order(tenant_id, operator_id, order_id).to_dict())


@sales_bp.route('/<int:order_id>/cancel', methods=['POST'])
@tenant_context
def cancel(order_id, tenant_id, operator_id):
    """取消订单"""
    return _ok(SalesService.cancel_order(tenant_id, operator_id, order_id).to_dict())


@sales_bp.route('/<int:order_id>/stage', methods=['POST'])
@tenant_context
def stage(order_id, tenant_id, operator_id):
    """更新仓库作业进度 (PICKING / PACKED)"""
    form = validate_form(FulfillmentStageForm, json_body())
    return _ok(SalesService.set_fulfillment_stage(tenant_id, order_id, form.status.data).to_dict())


@sales_bp.route('/<int:order_id>/fulfill', methods=['POST'])
@tenant_context
def fulfill(order_id, tenant_id, operator_id):
    """发货出库"""
    return _ok(SalesService.fulfill_order(tenant_id, operator_id, order_id).to_dict())


@sales_bp.route('/<int:order_id>/pick-list', methods=['GET'])
@tenant_context
def pick_list(order_id, tenant_id, operator_id):
    """拣货单"""
    return _ok(PickListService.generate(tenant_id, order_id))
