# 按照依赖顺序导入
from .base import BaseModel, TenantMixin
from .biz import Sku, Customer
from .stock import Warehouse, BinLocation, StockRecord, LedgerEntry
from .trade import SalesOrder, SalesOrderItem, OrderSequence
