from decimal import Decimal
from app.extensions import db
from .base import BaseModel, TenantMixin

class SalesOrder(TenantMixin, BaseModel):
    """销售订单头"""
    __tablename__ = 'trade_sales_orders'
    __table_args__ = (
        db.UniqueConstraint('tenant_id', 'order_number', name='uq_sales_order_number'),
    )

    STATUS_PENDING = 'PENDING'
    STATUS_CONFIRMED = 'CONFIRMED'
    STATUS_PICKING = 'PICKING'
    STATUS_PACKED = 'PACKED'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_CANCELLED = 'CANCELLED'

    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)
    FULFILLABLE_STATUSES = (STATUS_CONFIRMED, STATUS_PICKING, STATUS_PACKED)

    order_number = db.Column(db.String(32), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('biz_customers.id'), nullable=False)
    warehouse_id = db.Column(db.Integer, db.ForeignKey('stock_warehouses.id'), nullable=False)

    status = db.Column(db.String(20), default=STATUS_PENDING, nullable=False, index=True)
    total_amount = db.Column(db.Numeric(14, 2), default=Decimal('0'))
    currency = db.Column(db.String(3), default='EUR')
    notes = db.Column(db.String(255))
    shipped_at = db.Column(db.DateTime)

    # 关系
    customer = db.relationship('Customer')
    warehouse = db.relationship('Warehouse')
    items = db.relationship('SalesOrderItem', backref='order', cascade='all, delete-orphan',
                            order_by='SalesOrderItem.id')

    def to_dict(self):
        data = super().to_dict()
        data['items'] = [item.to_dict() for item in self.items]
        return data


class SalesOrderItem(BaseModel):
    """订单明细行"""
    __tablename__ = 'trade_sales_order_items'

    sales_order_id = db.Column(db.Integer, db.ForeignKey('trade_sales_orders.id'), nullable=False)
    sku_id = db.Column(db.Integer, db.ForeignKey('biz_skus.id'), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)  # 下单时的单价快照
    picked_qty = db.Column(db.Integer, default=0)

    sku = db.relationship('Sku')

    @property
    def subtotal(self):
        return self.quantity * self.unit_price


class OrderSequence(TenantMixin, db.Model):
    """
    单号计数器：每租户每天一行，原子自增
    """
    __tablename__ = 'trade_order_sequences'
    __table_args__ = (
        db.UniqueConstraint('tenant_id', 'prefix', 'day', name='uq_order_sequence_day'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    prefix = db.Column(db.String(8), nullable=False)
    day = db.Column(db.String(8), nullable=False)  # YYYYMMDD
    last_value = db.Column(db.Integer, default=0, nullable=False)
