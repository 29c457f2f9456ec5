"""拣货单服务 - 只读投影，不修改库存也不写流水"""
from app.exceptions import InvalidStateError
from app.models.stock import StockRecord
from app.models.trade import SalesOrder
from app.services.allocation import allocate
from app.services.sales_service import SalesService

UNASSIGNED_BIN = 'unassigned'  # 未上架 / 暂存区
SHORTAGE_BIN = 'shortage'      # 缺货

# 排序：具体货位按编码升序，其后为未上架，最后为缺货
# 名次取决于行的来源而非编码，货位编码与哨兵值相同也不会混排
_RANK_BIN, _RANK_UNASSIGNED, _RANK_SHORTAGE = 0, 1, 2


def _record_order(record):
    if record.bin_location is None:
        return (_RANK_UNASSIGNED, '')
    return (_RANK_BIN, record.bin_location.code)


def _pick_row(item, bin_code, quantity):
    return {
        'bin_code': bin_code,
        'sku_code': item.sku.code,
        'sku_name': item.sku.display_name,
        'quantity': quantity,
    }


class PickListService:

    @staticmethod
    def generate(tenant_id, order_id):
        """
        生成拣货单
        每行按货位编码顺序贪心取在库数量（不扣除锁定量：本单数量已在确认时整仓锁定），
        取不满的部分记为缺货行。结果按货位编码全局排序，方便按巷道顺序拣货。
        """
        order = SalesService.get_order(tenant_id, order_id)
        if order.status in SalesOrder.TERMINAL_STATUSES:
            raise InvalidStateError(f"Cannot get pick list for {order.status} order",
                                    payload={'status': order.status})

        ranked = []  # [((名次, 编码), 行), ...]
        for item in order.items:
            records = StockRecord.query.filter(
                StockRecord.tenant_id == tenant_id,
                StockRecord.sku_id == item.sku_id,
                StockRecord.warehouse_id == order.warehouse_id,
                StockRecord.quantity > 0
            ).all()

            allocation = allocate(records, item.quantity, capacity=lambda r: r.quantity,
                                  sort_key=_record_order)
            for record, amount in allocation.parts:
                bin_code = record.bin_location.code if record.bin_location else UNASSIGNED_BIN
                ranked.append((_record_order(record), _pick_row(item, bin_code, amount)))
            if allocation.shortfall:
                ranked.append(((_RANK_SHORTAGE, ''), _pick_row(item, SHORTAGE_BIN, allocation.shortfall)))

        ranked.sort(key=lambda pair: pair[0])
        return {
            'sales_order_id': order.id,
            'order_number': order.order_number,
            'warehouse_name': order.warehouse.name,
            'items': [row for _, row in ranked],
        }
