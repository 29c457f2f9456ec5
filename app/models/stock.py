from app.extensions import db
from .base import BaseModel, TenantMixin

class Warehouse(TenantMixin, BaseModel):
    """仓库"""
    __tablename__ = 'stock_warehouses'
    code = db.Column(db.String(32), index=True)
    name = db.Column(db.String(64))
    address = db.Column(db.String(255))

    bins = db.relationship('BinLocation', backref='warehouse', lazy='dynamic')


class BinLocation(TenantMixin, BaseModel):
    """货位 (WMS 货架格口)，编码在仓库内唯一，如 "A-01-03" """
    __tablename__ = 'stock_bin_locations'
    __table_args__ = (
        db.UniqueConstraint('warehouse_id', 'code', name='uq_bin_warehouse_code'),
    )

    warehouse_id = db.Column(db.Integer, db.ForeignKey('stock_warehouses.id'), nullable=False)
    code = db.Column(db.String(32), nullable=False)


class StockRecord(TenantMixin, BaseModel):
    """
    实时库存表 (SKU <-> 仓库 <-> 货位)
    bin_location_id 为空表示未上架 / 暂存区库存，与任何具体货位区分开。
    记录首次入库时懒创建，数量归零后保留，从不删除。
    """
    __tablename__ = 'stock_records'
    __table_args__ = (
        db.UniqueConstraint('tenant_id', 'sku_id', 'warehouse_id', 'bin_location_id',
                            name='uq_stock_record_key'),
        db.CheckConstraint('quantity >= 0', name='ck_stock_quantity_non_negative'),
        db.CheckConstraint('locked_qty >= 0 AND locked_qty <= quantity', name='ck_stock_locked_range'),
        # NULL 货位不受上面唯一约束保护，单独建部分唯一索引
        db.Index('uq_stock_record_unplaced', 'tenant_id', 'sku_id', 'warehouse_id', unique=True,
                 postgresql_where=db.text('bin_location_id IS NULL'),
                 sqlite_where=db.text('bin_location_id IS NULL')),
    )

    sku_id = db.Column(db.Integer, db.ForeignKey('biz_skus.id'), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey('stock_warehouses.id'), nullable=False, index=True)
    bin_location_id = db.Column(db.Integer, db.ForeignKey('stock_bin_locations.id'), nullable=True)

    quantity = db.Column(db.Integer, default=0, nullable=False)    # 在库数量（含锁定部分）
    locked_qty = db.Column(db.Integer, default=0, nullable=False)  # 已锁定（订单预留）

    sku = db.relationship('Sku')
    warehouse = db.relationship('Warehouse')
    bin_location = db.relationship('BinLocation')

    @property
    def available(self):
        """可用数量 = 在库 - 锁定"""
        return self.quantity - self.locked_qty

    def to_dict(self):
        data = super().to_dict()
        data['available'] = self.available
        data['warehouse_code'] = self.warehouse.code if self.warehouse else None
        data['bin_code'] = self.bin_location.code if self.bin_location else None
        return data


class LedgerEntry(TenantMixin, BaseModel):
    """
    库存流水 (核心审计表)
    只追加，不修改、不删除。数量带符号：增加为正，减少为负；
    LOCK 记录锁定量（正），UNLOCK 记录解锁量（负）。
    流水不记录货位。
    """
    __tablename__ = 'stock_ledger'
    __table_args__ = (
        db.Index('ix_ledger_lookup', 'tenant_id', 'sku_id', 'warehouse_id', 'type', 'created_at'),
    )

    TYPE_INBOUND = 'INBOUND'
    TYPE_OUTBOUND = 'OUTBOUND'
    TYPE_ADJUSTMENT = 'ADJUSTMENT'
    TYPE_TRANSFER = 'TRANSFER'
    TYPE_LOCK = 'LOCK'
    TYPE_UNLOCK = 'UNLOCK'
    TYPE_RETURN = 'RETURN'
    TYPES = (TYPE_INBOUND, TYPE_OUTBOUND, TYPE_ADJUSTMENT, TYPE_TRANSFER,
             TYPE_LOCK, TYPE_UNLOCK, TYPE_RETURN)

    # 影响在库数量的类型（用于对账）
    ON_HAND_TYPES = (TYPE_INBOUND, TYPE_OUTBOUND, TYPE_ADJUSTMENT, TYPE_RETURN)

    sku_id = db.Column(db.Integer, db.ForeignKey('biz_skus.id'), nullable=False)
    warehouse_id = db.Column(db.Integer, db.ForeignKey('stock_warehouses.id'), nullable=False)

    type = db.Column(db.String(20), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    reference_type = db.Column(db.String(32))  # e.g. "SO", "TRANSFER", "PO"
    reference_id = db.Column(db.String(64))
    notes = db.Column(db.String(255))
    operator_id = db.Column(db.Integer)

    sku = db.relationship('Sku')
    warehouse = db.relationship('Warehouse')
