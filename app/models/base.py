from datetime import datetime
from decimal import Decimal
from app.extensions import db

class BaseModel(db.Model):
    """
    NEXUS 企业级模型基类
    包含：ID主键, 创建时间, 更新时间, 软删除标记, 序列化方法
    """
    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # 软删除标记：1=已删除, 0=正常
    is_deleted = db.Column(db.Boolean, default=False, index=True)

    def to_dict(self):
        """
        通用序列化方法：将模型转换为字典，便于 API 返回 JSON。
        过滤掉以 '_' 开头的私有属性。
        """
        data = {}
        for c in self.__table__.columns:
            if c.name.startswith('_'):
                continue
            val = getattr(self, c.name)
            if isinstance(val, datetime):
                data[c.name] = val.isoformat()
            elif isinstance(val, Decimal):
                data[c.name] = str(val)
            else:
                data[c.name] = val
        return data


class TenantMixin:
    """租户隔离字段：所有业务数据都归属于唯一租户"""
    tenant_id = db.Column(db.Integer, nullable=False, index=True)
