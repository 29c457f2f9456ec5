"""销售订单服务 - 下单定价、状态流转（确认锁库 / 取消解锁 / 发货出库）"""
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from app.extensions import db
from app.exceptions import ValidationError, NotFoundError, InvalidStateError, TransientError
from app.models.biz import Sku, Customer
from app.models.stock import Warehouse
from app.models.trade import SalesOrder, SalesOrderItem, OrderSequence
from app.services.inventory_service import InventoryService
from app.utils.transaction import transaction

logger = logging.getLogger(__name__)

# 客户等级折扣
TIER_DISCOUNT = {
    Customer.TIER_NORMAL: Decimal('1.00'),
    Customer.TIER_SILVER: Decimal('0.98'),
    Customer.TIER_GOLD: Decimal('0.95'),
    Customer.TIER_VIP: Decimal('0.90'),
}

CENT = Decimal('0.01')
REFERENCE_TYPE = 'SO'


class SalesService:

    @staticmethod
    def get_unit_price(wholesale_price, tier):
        """单价 = SKU 批发价 × 客户等级折扣"""
        base = Decimal(str(wholesale_price)) if wholesale_price is not None else Decimal('0')
        return (base * TIER_DISCOUNT.get(tier, Decimal('1.00'))).quantize(CENT, rounding=ROUND_HALF_UP)

    @staticmethod
    def generate_order_number(tenant_id, now=None):
        """
        生成订单号 SO-YYYYMMDD-NNNN
        每租户每天一个计数行，原子自增，保证并发下不重号
        """
        day = (now or datetime.utcnow()).strftime('%Y%m%d')
        criteria = (
            OrderSequence.tenant_id == tenant_id,
            OrderSequence.prefix == REFERENCE_TYPE,
            OrderSequence.day == day,
        )

        result = db.session.execute(
            update(OrderSequence).where(*criteria)
            .values(last_value=OrderSequence.last_value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            value = db.session.query(OrderSequence.last_value).filter(*criteria).scalar()
        else:
            db.session.add(OrderSequence(tenant_id=tenant_id, prefix=REFERENCE_TYPE, day=day, last_value=1))
            try:
                db.session.flush()
            except IntegrityError as e:
                # 当天首单并发插入计数行
                raise TransientError("Order number allocation collided, please retry") from e
            value = 1

        return f"{REFERENCE_TYPE}-{day}-{value:04d}"

    # ============== 查询 ==============

    @staticmethod
    def get_order(tenant_id, order_id, for_update=False):
        query = SalesOrder.query.filter_by(id=order_id, tenant_id=tenant_id, is_deleted=False)
        if for_update:
            query = query.with_for_update()
        order = query.first()
        if not order:
            raise NotFoundError(f"Sales order {order_id} not found")
        return order

    @staticmethod
    def list_orders(tenant_id, status=None, customer_id=None, page=1, per_page=20):
        query = SalesOrder.query.filter_by(tenant_id=tenant_id, is_deleted=False)
        if status:
            query = query.filter_by(status=status)
        if customer_id:
            query = query.filter_by(customer_id=customer_id)
        return query.order_by(SalesOrder.created_at.desc(), SalesOrder.id.desc()) \
            .paginate(page=page, per_page=per_page, error_out=False)

    # ============== 创建与编辑 ==============

    @staticmethod
    def create_order(tenant_id, customer_id, warehouse_id, items_data, currency=None, notes=None):
        """
        创建销售订单（PENDING）
        :param items_data: [{'sku_id': 1, 'quantity': 2}, ...]
        单价按客户当前等级冻结在订单行上，之后客户等级或 SKU 价格变化不影响本单。
        """
        if not items_data:
            raise ValidationError("Sales order requires at least one item", payload={'field': 'items'})
        for line in items_data:
            qty = line.get('quantity')
            if not isinstance(qty, int) or isinstance(qty, bool) or qty <= 0:
                raise ValidationError("Quantity must be a positive integer", payload={'field': 'quantity'})

        with transaction():
            customer = Customer.query.filter_by(id=customer_id, tenant_id=tenant_id, is_deleted=False).first()
            if not customer:
                raise NotFoundError('Customer not found')
            warehouse = Warehouse.query.filter_by(id=warehouse_id, tenant_id=tenant_id, is_deleted=False).first()
            if not warehouse:
                raise NotFoundError('Warehouse not found')
            if not customer.is_active:
                raise ValidationError('Customer is inactive')

            order = SalesOrder(
                tenant_id=tenant_id,
                order_number=SalesService.generate_order_number(tenant_id),
                customer_id=customer.id,
                warehouse_id=warehouse.id,
                currency=currency or current_app.config.get('DEFAULT_CURRENCY', 'EUR'),
                notes=notes,
                status=SalesOrder.STATUS_PENDING,
            )

            total = Decimal('0')
            for line in items_data:
                sku = Sku.query.filter_by(id=line.get('sku_id'), tenant_id=tenant_id, is_deleted=False).first()
                if not sku:
                    raise NotFoundError(f"SKU {line.get('sku_id')} not found")

                unit_price = SalesService.get_unit_price(sku.wholesale_price, customer.tier)
                item = SalesOrderItem(sku_id=sku.id, quantity=line['quantity'], unit_price=unit_price)
                order.items.append(item)
                total += item.subtotal

            order.total_amount = total
            db.session.add(order)
            db.session.flush()

        logger.info(f"[SO] 创建订单 {order.order_number} tenant={tenant_id} 金额={order.total_amount} {order.currency}")
        return order

    @staticmethod
    def update_order(tenant_id, order_id, notes=None, currency=None):
        """仅待确认订单可修改表头（备注、币种）；明细与价格不可改"""
        with transaction():
            order = SalesService.get_order(tenant_id, order_id, for_update=True)
            if order.status != SalesOrder.STATUS_PENDING:
                raise InvalidStateError(f"Cannot update: order status is {order.status}",
                                        payload={'status': order.status})
            if notes is not None:
                order.notes = notes
            if currency is not None:
                order.currency = currency
        return order

    # ============== 状态流转 ==============

    @staticmethod
    def confirm_order(tenant_id, operator_id, order_id):
        """
        确认订单 PENDING -> CONFIRMED
        逐行锁定库存；任一行锁定失败则整单回滚，不留下部分锁定。
        """
        with transaction():
            order = SalesService.get_order(tenant_id, order_id, for_update=True)
            _require_status(order, (SalesOrder.STATUS_PENDING,), 'confirm')

            for item in order.items:
                InventoryService.lock_inventory(
                    tenant_id, operator_id, item.sku_id, order.warehouse_id, item.quantity,
                    reference_type=REFERENCE_TYPE, reference_id=order.id
                )
            order.status = SalesOrder.STATUS_CONFIRMED

        logger.info(f"[SO] {order.order_number} 已确认，锁定 {len(order.items)} 行库存")
        return order

    @staticmethod
    def cancel_order(tenant_id, operator_id, order_id):
        """
        取消订单 PENDING/CONFIRMED -> CANCELLED
        已确认订单先逐行解锁（与确认时的锁定对称）
        """
        with transaction():
            order = SalesService.get_order(tenant_id, order_id, for_update=True)
            _require_status(order, (SalesOrder.STATUS_PENDING, SalesOrder.STATUS_CONFIRMED), 'cancel')

            if order.status == SalesOrder.STATUS_CONFIRMED:
                for item in order.items:
                    InventoryService.unlock_inventory(
                        tenant_id, operator_id, item.sku_id, order.warehouse_id, item.quantity,
                        reference_type=REFERENCE_TYPE, reference_id=order.id
                    )
            order.status = SalesOrder.STATUS_CANCELLED

        logger.info(f"[SO] {order.order_number} 已取消")
        return order

    @staticmethod
    def set_fulfillment_stage(tenant_id, order_id, status):
        """仓库作业进度：CONFIRMED -> PICKING -> PACKED，不涉及库存"""
        allowed = {
            SalesOrder.STATUS_PICKING: (SalesOrder.STATUS_CONFIRMED,),
            SalesOrder.STATUS_PACKED: (SalesOrder.STATUS_PICKING,),
        }
        if status not in allowed:
            raise ValidationError(f"Unsupported fulfillment stage: {status}", payload={'field': 'status'})

        with transaction():
            order = SalesService.get_order(tenant_id, order_id, for_update=True)
            _require_status(order, allowed[status], f"move to {status}")
            order.status = status

        logger.info(f"[SO] {order.order_number} -> {status}")
        return order

    @staticmethod
    def fulfill_order(tenant_id, operator_id, order_id):
        """
        发货 CONFIRMED/PICKING/PACKED -> COMPLETED
        逐行发货出库，同时消耗确认时的锁定量
        """
        with transaction():
            order = SalesService.get_order(tenant_id, order_id, for_update=True)
            _require_status(order, SalesOrder.FULFILLABLE_STATUSES, 'fulfill')

            for item in order.items:
                InventoryService.ship_reserved(
                    tenant_id, operator_id, item.sku_id, order.warehouse_id, item.quantity,
                    reference_type=REFERENCE_TYPE, reference_id=order.id,
                    notes=f"Sales order {order.order_number}"
                )
                item.picked_qty = item.quantity

            order.status = SalesOrder.STATUS_COMPLETED
            order.shipped_at = datetime.utcnow()

        logger.info(f"[SO] {order.order_number} 已发货完成")
        return order


def _require_status(order, allowed, action):
    if order.status not in allowed:
        logger.warning(f"[SO] {order.order_number} 状态 {order.status} 不允许 {action}")
        raise InvalidStateError(f"Cannot {action}: order status is {order.status}",
                                payload={'status': order.status})
