from app.extensions import db
from .base import BaseModel, TenantMixin

class Sku(TenantMixin, BaseModel):
    """
    可售规格 (颜色/材质等变体)
    批发价在下单时被冻结到订单行，后续改价不影响历史订单
    """
    __tablename__ = 'biz_skus'
    __table_args__ = (
        db.UniqueConstraint('tenant_id', 'code', name='uq_sku_tenant_code'),
    )

    code = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(128))
    wholesale_price = db.Column(db.Numeric(12, 2))  # 批发价，可为空（视为 0）
    is_active = db.Column(db.Boolean, default=True)

    @property
    def display_name(self):
        return self.name or self.code


class Customer(TenantMixin, BaseModel):
    """批发客户，等级决定下单折扣"""
    __tablename__ = 'biz_customers'

    TIER_NORMAL = 'NORMAL'
    TIER_SILVER = 'SILVER'
    TIER_GOLD = 'GOLD'
    TIER_VIP = 'VIP'
    TIERS = (TIER_NORMAL, TIER_SILVER, TIER_GOLD, TIER_VIP)

    name = db.Column(db.String(128), index=True)
    tier = db.Column(db.String(16), default=TIER_NORMAL, nullable=False)
    contact_person = db.Column(db.String(64))
    phone = db.Column(db.String(32))
    email = db.Column(db.String(128))
    is_active = db.Column(db.Boolean, default=True)
