"""
事务工具模块
库存操作与订单流转都必须在单个事务内完成：要么全部提交，要么全部回滚。
"""
import logging
from contextlib import contextmanager
from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from app.extensions import db
from app.exceptions import ConflictError, TransientError

logger = logging.getLogger(__name__)

_DEPTH_KEY = 'nexus_tx_depth'


@contextmanager
def transaction():
    """
    事务上下文
    最外层负责提交/回滚；嵌套调用直接并入外层事务。
    使用方法:
    with transaction():
        InventoryService.lock_inventory(...)
        InventoryService.lock_inventory(...)
    """
    session = db.session()
    depth = session.info.get(_DEPTH_KEY, 0)
    if depth:
        session.info[_DEPTH_KEY] = depth + 1
        try:
            yield session
        finally:
            session.info[_DEPTH_KEY] = depth
        return

    session.info[_DEPTH_KEY] = 1
    try:
        _apply_lock_timeout(session)
        yield session
        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.warning(f"事务因唯一约束回滚: {e.orig}")
        raise ConflictError(f"Conflict: {e.orig}") from e
    except OperationalError as e:
        session.rollback()
        logger.warning(f"事务因数据库锁/序列化失败回滚: {e.orig}")
        raise TransientError() from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.info[_DEPTH_KEY] = 0


def _apply_lock_timeout(session):
    """PostgreSQL 下为本事务设置锁等待上限"""
    if session.get_bind().dialect.name != 'postgresql':
        return
    timeout = int(current_app.config.get('INVENTORY_LOCK_TIMEOUT_MS', 5000))
    session.execute(db.text(f"SET LOCAL lock_timeout = {timeout}"))
