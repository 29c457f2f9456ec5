"""库存服务 - 入库/出库/调整/调拨/锁定/解锁 与库存流水"""
import logging
from datetime import datetime, timedelta
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from app.extensions import db
from app.exceptions import ValidationError, NotFoundError, InsufficientStockError, TransientError
from app.models.biz import Sku
from app.models.stock import Warehouse, BinLocation, StockRecord, LedgerEntry
from app.services.allocation import allocate
from app.utils.transaction import transaction

logger = logging.getLogger(__name__)


class InventoryService:
    """
    库存操作引擎
    每个操作在一个事务内完成：库存记录变更 + 追加流水，要么全部提交，要么全部回滚。
    返回值统一为该 SKU 在所有仓库/货位上的汇总（提交前重新计算，而非增量）。
    """

    # ============== 查询 ==============

    @staticmethod
    def get_sku_inventory(tenant_id, sku_id):
        """SKU 库存汇总：各仓库/货位明细 + 总在库 / 总锁定 / 总可用"""
        records = StockRecord.query.filter_by(tenant_id=tenant_id, sku_id=sku_id) \
            .order_by(StockRecord.warehouse_id.asc(), StockRecord.id.asc()).all()

        total_quantity = sum(r.quantity for r in records)
        total_locked = sum(r.locked_qty for r in records)
        return {
            'sku_id': sku_id,
            'items': [r.to_dict() for r in records],
            'total_quantity': total_quantity,
            'total_locked': total_locked,
            'available': total_quantity - total_locked,
        }

    @staticmethod
    def list_inventory(tenant_id, sku_id=None, warehouse_id=None, page=1, per_page=20):
        """分页查询库存记录"""
        query = StockRecord.query.filter_by(tenant_id=tenant_id)
        if sku_id:
            query = query.filter_by(sku_id=sku_id)
        if warehouse_id:
            query = query.filter_by(warehouse_id=warehouse_id)

        return query.order_by(StockRecord.warehouse_id.asc(), StockRecord.sku_id.asc()) \
            .paginate(page=page, per_page=per_page, error_out=False)

    @staticmethod
    def get_ledger(tenant_id, sku_id=None, warehouse_id=None, ledger_type=None,
                   start=None, end=None, page=1, per_page=20):
        """
        分页查询库存流水（最新在前）
        :param start: 起始时间 (date/datetime)
        :param end: 截止时间；传入 date 时包含当天全天
        """
        query = LedgerEntry.query.filter_by(tenant_id=tenant_id)
        if sku_id:
            query = query.filter_by(sku_id=sku_id)
        if warehouse_id:
            query = query.filter_by(warehouse_id=warehouse_id)
        if ledger_type:
            if ledger_type not in LedgerEntry.TYPES:
                raise ValidationError(f"Unknown ledger type: {ledger_type}")
            query = query.filter_by(type=ledger_type)
        if start:
            if not isinstance(start, datetime):
                start = datetime.combine(start, datetime.min.time())
            query = query.filter(LedgerEntry.created_at >= start)
        if end:
            if isinstance(end, datetime):
                query = query.filter(LedgerEntry.created_at <= end)
            else:
                query = query.filter(LedgerEntry.created_at < datetime.combine(end + timedelta(days=1), datetime.min.time()))

        return query.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc()) \
            .paginate(page=page, per_page=per_page, error_out=False)

    # ============== 基础操作 ==============

    @staticmethod
    def inbound(tenant_id, operator_id, sku_id, warehouse_id, quantity, bin_location_id=None,
                reference_type=None, reference_id=None, notes=None):
        """入库：在库数量增加，记录 INBOUND 流水"""
        return InventoryService._receive(
            LedgerEntry.TYPE_INBOUND, tenant_id, operator_id, sku_id, warehouse_id, quantity,
            bin_location_id, reference_type, reference_id, notes
        )

    @staticmethod
    def return_stock(tenant_id, operator_id, sku_id, warehouse_id, quantity, bin_location_id=None,
                     reference_type=None, reference_id=None, notes=None):
        """退货入库：与入库相同，流水类型为 RETURN"""
        return InventoryService._receive(
            LedgerEntry.TYPE_RETURN, tenant_id, operator_id, sku_id, warehouse_id, quantity,
            bin_location_id, reference_type, reference_id, notes
        )

    @staticmethod
    def outbound(tenant_id, operator_id, sku_id, warehouse_id, quantity, bin_location_id=None,
                 reference_type=None, reference_id=None, notes=None):
        """出库：只能扣减未锁定部分，记录 OUTBOUND 流水"""
        _require_positive(quantity)

        with transaction():
            _check_refs(tenant_id, sku_id, warehouse_id, bin_location_id)
            record = _find_record(tenant_id, sku_id, warehouse_id, bin_location_id)
            if not record:
                _reject(sku_id, warehouse_id, 'Insufficient stock: no inventory found',
                        available=0, requested=quantity)
            if record.available < quantity:
                _reject(sku_id, warehouse_id,
                        f"Insufficient stock: available {record.available}, requested {quantity}",
                        available=record.available, requested=quantity)

            record.quantity -= quantity
            _write_ledger(tenant_id, operator_id, sku_id, warehouse_id, LedgerEntry.TYPE_OUTBOUND,
                          -quantity, reference_type, reference_id, notes)
            summary = InventoryService.get_sku_inventory(tenant_id, sku_id)

        logger.info(f"[OUTBOUND] sku={sku_id} warehouse={warehouse_id} qty=-{quantity} ref={reference_type}/{reference_id}")
        return summary

    @staticmethod
    def adjust(tenant_id, operator_id, sku_id, warehouse_id, quantity, bin_location_id=None, notes=None):
        """
        盘点调整
        :param quantity: 带符号的调整量，不能为 0
        调整后数量最低为 0（容忍过度冲减）；流水记录请求的原始调整量。
        若记录不存在且调整结果 <= 0，则不建记录、不写流水。
        """
        if not _is_int(quantity) or quantity == 0:
            raise ValidationError("Adjustment quantity must be a non-zero integer",
                                  payload={'field': 'quantity'})

        with transaction():
            _check_refs(tenant_id, sku_id, warehouse_id, bin_location_id)
            record = _find_record(tenant_id, sku_id, warehouse_id, bin_location_id)
            new_quantity = max(0, (record.quantity if record else 0) + quantity)

            if not record:
                if new_quantity <= 0:
                    logger.info(f"[ADJUSTMENT] sku={sku_id} warehouse={warehouse_id} 无库存记录，调整 {quantity} 忽略")
                    return InventoryService.get_sku_inventory(tenant_id, sku_id)
                record = _get_or_create_record(tenant_id, sku_id, warehouse_id, bin_location_id)

            record.quantity = new_quantity
            if record.locked_qty > new_quantity:
                # 实物已不足以覆盖预留，锁定量随之收缩
                logger.warning(f"[ADJUSTMENT] sku={sku_id} warehouse={warehouse_id} "
                               f"锁定量 {record.locked_qty} 超出调整后在库 {new_quantity}，已截断")
                record.locked_qty = new_quantity

            _write_ledger(tenant_id, operator_id, sku_id, warehouse_id, LedgerEntry.TYPE_ADJUSTMENT,
                          quantity, None, None, notes)
            summary = InventoryService.get_sku_inventory(tenant_id, sku_id)

        logger.info(f"[ADJUSTMENT] sku={sku_id} warehouse={warehouse_id} qty={quantity:+d} -> {new_quantity}")
        return summary

    @staticmethod
    def transfer(tenant_id, operator_id, sku_id, from_warehouse_id, to_warehouse_id, quantity,
                 from_bin_location_id=None, to_bin_location_id=None, notes=None):
        """
        调拨：源位置出库 + 目标位置入库，同一事务
        写两条流水：源仓 OUTBOUND（关联目标仓）、目标仓 INBOUND（关联源仓）
        """
        _require_positive(quantity)

        with transaction():
            _check_refs(tenant_id, sku_id, from_warehouse_id, from_bin_location_id)
            _check_refs(tenant_id, sku_id, to_warehouse_id, to_bin_location_id)

            source = _find_record(tenant_id, sku_id, from_warehouse_id, from_bin_location_id)
            if not source:
                _reject(sku_id, from_warehouse_id, 'Insufficient stock at source warehouse',
                        available=0, requested=quantity)
            if source.available < quantity:
                _reject(sku_id, from_warehouse_id,
                        f"Insufficient stock at source: available {source.available}, requested {quantity}",
                        available=source.available, requested=quantity)

            source.quantity -= quantity
            _write_ledger(tenant_id, operator_id, sku_id, from_warehouse_id, LedgerEntry.TYPE_OUTBOUND,
                          -quantity, 'TRANSFER', str(to_warehouse_id), notes)

            target = _get_or_create_record(tenant_id, sku_id, to_warehouse_id, to_bin_location_id)
            target.quantity += quantity
            _write_ledger(tenant_id, operator_id, sku_id, to_warehouse_id, LedgerEntry.TYPE_INBOUND,
                          quantity, 'TRANSFER', str(from_warehouse_id), notes)
            summary = InventoryService.get_sku_inventory(tenant_id, sku_id)

        logger.info(f"[TRANSFER] sku={sku_id} {from_warehouse_id}/{from_bin_location_id} -> "
                    f"{to_warehouse_id}/{to_bin_location_id} qty={quantity}")
        return summary

    @staticmethod
    def lock_inventory(tenant_id, operator_id, sku_id, warehouse_id, quantity,
                       reference_type=None, reference_id=None):
        """
        锁定库存（订单预留）
        按仓库汇总可用量校验，然后按在库数量从大到小逐行锁定；整次调用只写一条 LOCK 流水。
        """
        _require_positive(quantity)

        with transaction():
            _check_refs(tenant_id, sku_id, warehouse_id)
            records = _records_for(tenant_id, sku_id, warehouse_id)

            total_available = sum(r.available for r in records)
            if total_available < quantity:
                _reject(sku_id, warehouse_id,
                        f"Insufficient available to lock: available {total_available}, requested {quantity}",
                        available=total_available, requested=quantity)

            allocation = allocate(records, quantity, capacity=lambda r: r.available,
                                  sort_key=lambda r: r.quantity, reverse=True)
            for record, amount in allocation.parts:
                record.locked_qty += amount

            _write_ledger(tenant_id, operator_id, sku_id, warehouse_id, LedgerEntry.TYPE_LOCK,
                          quantity, reference_type, reference_id, None)
            summary = InventoryService.get_sku_inventory(tenant_id, sku_id)

        logger.info(f"[LOCK] sku={sku_id} warehouse={warehouse_id} qty={quantity} ref={reference_type}/{reference_id}")
        return summary

    @staticmethod
    def unlock_inventory(tenant_id, operator_id, sku_id, warehouse_id, quantity,
                         reference_type=None, reference_id=None):
        """解锁库存：按锁定量从大到小逐行释放；写一条 UNLOCK 流水（数量为负）"""
        _require_positive(quantity)

        with transaction():
            _check_refs(tenant_id, sku_id, warehouse_id)
            records = _records_for(tenant_id, sku_id, warehouse_id)

            total_locked = sum(r.locked_qty for r in records)
            if total_locked < quantity:
                _reject(sku_id, warehouse_id,
                        f"Insufficient locked to unlock: locked {total_locked}, requested {quantity}",
                        locked=total_locked, requested=quantity)

            allocation = allocate(records, quantity, capacity=lambda r: r.locked_qty,
                                  sort_key=lambda r: r.locked_qty, reverse=True)
            for record, amount in allocation.parts:
                record.locked_qty -= amount

            _write_ledger(tenant_id, operator_id, sku_id, warehouse_id, LedgerEntry.TYPE_UNLOCK,
                          -quantity, reference_type, reference_id, None)
            summary = InventoryService.get_sku_inventory(tenant_id, sku_id)

        logger.info(f"[UNLOCK] sku={sku_id} warehouse={warehouse_id} qty={quantity} ref={reference_type}/{reference_id}")
        return summary

    @staticmethod
    def ship_reserved(tenant_id, operator_id, sku_id, warehouse_id, quantity,
                      reference_type=None, reference_id=None, notes=None):
        """
        订单发货出库
        先消耗已有锁定（同一行同时扣减锁定量与在库量），不足部分再从未锁定库存扣减，
        保证每行锁定量始终不超过在库量。只写一条 OUTBOUND 流水。
        """
        _require_positive(quantity)

        with transaction():
            _check_refs(tenant_id, sku_id, warehouse_id)
            records = _records_for(tenant_id, sku_id, warehouse_id)

            release = min(quantity, sum(r.locked_qty for r in records))
            remainder = quantity - release
            total_available = sum(r.available for r in records)
            if total_available < remainder:
                _reject(sku_id, warehouse_id,
                        f"Insufficient stock: available {total_available + release}, requested {quantity}",
                        available=total_available + release, requested=quantity)

            released = allocate(records, release, capacity=lambda r: r.locked_qty,
                                sort_key=lambda r: r.locked_qty, reverse=True)
            for record, amount in released.parts:
                record.locked_qty -= amount
                record.quantity -= amount

            debited = allocate(records, remainder, capacity=lambda r: r.available,
                               sort_key=lambda r: r.quantity, reverse=True)
            for record, amount in debited.parts:
                record.quantity -= amount

            _write_ledger(tenant_id, operator_id, sku_id, warehouse_id, LedgerEntry.TYPE_OUTBOUND,
                          -quantity, reference_type, reference_id, notes)
            summary = InventoryService.get_sku_inventory(tenant_id, sku_id)

        logger.info(f"[OUTBOUND] sku={sku_id} warehouse={warehouse_id} qty=-{quantity} "
                    f"(released lock {release}) ref={reference_type}/{reference_id}")
        return summary

    # ============== 对账 ==============

    @staticmethod
    def reconcile(tenant_id, sku_id=None, warehouse_id=None):
        """
        流水与库存对账
        按 (SKU, 仓库) 比较 INBOUND/OUTBOUND/ADJUSTMENT/RETURN 流水合计与库存记录在库合计
        :return: 不一致的键列表
        """
        ledger_q = db.session.query(
            LedgerEntry.sku_id, LedgerEntry.warehouse_id, func.sum(LedgerEntry.quantity)
        ).filter(
            LedgerEntry.tenant_id == tenant_id,
            LedgerEntry.type.in_(LedgerEntry.ON_HAND_TYPES)
        )
        stock_q = db.session.query(
            StockRecord.sku_id, StockRecord.warehouse_id, func.sum(StockRecord.quantity)
        ).filter(StockRecord.tenant_id == tenant_id)

        if sku_id:
            ledger_q = ledger_q.filter(LedgerEntry.sku_id == sku_id)
            stock_q = stock_q.filter(StockRecord.sku_id == sku_id)
        if warehouse_id:
            ledger_q = ledger_q.filter(LedgerEntry.warehouse_id == warehouse_id)
            stock_q = stock_q.filter(StockRecord.warehouse_id == warehouse_id)

        ledger_sums = {(s, w): int(total or 0) for s, w, total in
                       ledger_q.group_by(LedgerEntry.sku_id, LedgerEntry.warehouse_id).all()}
        stock_sums = {(s, w): int(total or 0) for s, w, total in
                      stock_q.group_by(StockRecord.sku_id, StockRecord.warehouse_id).all()}

        mismatches = []
        for key in sorted(set(ledger_sums) | set(stock_sums)):
            ledger_total = ledger_sums.get(key, 0)
            on_hand = stock_sums.get(key, 0)
            if ledger_total != on_hand:
                mismatches.append({
                    'sku_id': key[0],
                    'warehouse_id': key[1],
                    'ledger_quantity': ledger_total,
                    'on_hand': on_hand,
                    'difference': on_hand - ledger_total,
                })
        return mismatches

    # ============== 内部实现 ==============

    @staticmethod
    def _receive(ledger_type, tenant_id, operator_id, sku_id, warehouse_id, quantity, bin_location_id,
                 reference_type, reference_id, notes):
        _require_positive(quantity)

        with transaction():
            _check_refs(tenant_id, sku_id, warehouse_id, bin_location_id)
            record = _get_or_create_record(tenant_id, sku_id, warehouse_id, bin_location_id)
            record.quantity += quantity
            _write_ledger(tenant_id, operator_id, sku_id, warehouse_id, ledger_type,
                          quantity, reference_type, reference_id, notes)
            summary = InventoryService.get_sku_inventory(tenant_id, sku_id)

        logger.info(f"[{ledger_type}] sku={sku_id} warehouse={warehouse_id} bin={bin_location_id} "
                    f"qty=+{quantity} ref={reference_type}/{reference_id}")
        return summary


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _require_positive(quantity):
    if not _is_int(quantity) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer", payload={'field': 'quantity'})


def _reject(sku_id, warehouse_id, message, **figures):
    logger.warning(f"库存操作被拒绝 sku={sku_id} warehouse={warehouse_id}: {message}")
    raise InsufficientStockError(message, payload=figures)


def _check_refs(tenant_id, sku_id, warehouse_id, bin_location_id=None):
    """校验 SKU / 仓库 / 货位 存在且属于当前租户"""
    if not Sku.query.filter_by(id=sku_id, tenant_id=tenant_id, is_deleted=False).first():
        raise NotFoundError(f"SKU {sku_id} not found")
    if not Warehouse.query.filter_by(id=warehouse_id, tenant_id=tenant_id, is_deleted=False).first():
        raise NotFoundError(f"Warehouse {warehouse_id} not found")
    if bin_location_id is not None:
        bin_location = BinLocation.query.filter_by(
            id=bin_location_id, tenant_id=tenant_id, warehouse_id=warehouse_id, is_deleted=False
        ).first()
        if not bin_location:
            raise NotFoundError(f"Bin location {bin_location_id} not found in warehouse {warehouse_id}")


def _key_query(tenant_id, sku_id, warehouse_id, bin_location_id):
    query = StockRecord.query.filter_by(tenant_id=tenant_id, sku_id=sku_id, warehouse_id=warehouse_id)
    if bin_location_id is None:
        return query.filter(StockRecord.bin_location_id.is_(None))
    return query.filter(StockRecord.bin_location_id == bin_location_id)


def _find_record(tenant_id, sku_id, warehouse_id, bin_location_id):
    """按精确键查找并加行锁"""
    return _key_query(tenant_id, sku_id, warehouse_id, bin_location_id).with_for_update().first()


def _get_or_create_record(tenant_id, sku_id, warehouse_id, bin_location_id):
    """
    查找或懒创建库存记录
    并发首次入库撞上唯一约束时整个事务作废，由调用方重试
    """
    record = _find_record(tenant_id, sku_id, warehouse_id, bin_location_id)
    if record:
        return record

    record = StockRecord(
        tenant_id=tenant_id, sku_id=sku_id, warehouse_id=warehouse_id,
        bin_location_id=bin_location_id, quantity=0, locked_qty=0
    )
    db.session.add(record)
    try:
        db.session.flush()
    except IntegrityError as e:
        raise TransientError("Stock record was created concurrently, please retry") from e
    return record


def _records_for(tenant_id, sku_id, warehouse_id):
    """某 SKU 在某仓库的全部库存记录（不分货位），加行锁"""
    return StockRecord.query.filter_by(tenant_id=tenant_id, sku_id=sku_id, warehouse_id=warehouse_id) \
        .order_by(StockRecord.id.asc()).with_for_update().all()


def _write_ledger(tenant_id, operator_id, sku_id, warehouse_id, ledger_type, quantity,
                  reference_type, reference_id, notes):
    entry = LedgerEntry(
        tenant_id=tenant_id,
        sku_id=sku_id,
        warehouse_id=warehouse_id,
        type=ledger_type,
        quantity=quantity,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        notes=notes,
        operator_id=operator_id,
    )
    db.session.add(entry)
    return entry
