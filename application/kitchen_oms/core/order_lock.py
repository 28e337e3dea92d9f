"""
Per-order serialization.

`locked_order` holds a process-local mutex for the order number and takes a
row lock (SELECT ... FOR UPDATE) on the order inside a fresh transaction, so
every mutation of one order and its invoice happens one at a time. The
`version` counter on the order row catches writers that bypass the lock.

Callers must not await while the lock is held.
"""
import threading
import zlib
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from kitchen_oms.connections.database import get_db_session
from kitchen_oms.core.exceptions import ConcurrentModificationError, OrderNotFoundError
from kitchen_oms.logging.utils import get_app_logger
from kitchen_oms.middlewares.request_context import request_context
from kitchen_oms.models.orders import Order

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()

logger = get_app_logger("kitchen_oms.order_lock")

_stripes = [threading.RLock() for _ in range(configs.ORDER_LOCK_STRIPES)]


def _stripe_for(order_number: str) -> threading.RLock:
    return _stripes[zlib.crc32(order_number.encode("utf-8")) % len(_stripes)]


@contextmanager
def locked_order(order_number: str, db_session=get_db_session):
    """
    Yield (session, order) with the order row locked for the duration of the block.

    The transaction commits when the block exits cleanly and rolls back on error.

    Raises:
        OrderNotFoundError: no order with that number
        ConcurrentModificationError: the lock could not be taken in time or a
            concurrent writer changed the row first
    """
    mutex = _stripe_for(order_number)
    if not mutex.acquire(timeout=configs.ORDER_LOCK_TIMEOUT_SECONDS):
        logger.warning(f"order_lock_timeout | order_number={order_number}")
        raise ConcurrentModificationError(f"Order {order_number} is busy, retry the request")
    request_context.order_number = order_number
    try:
        with db_session() as session:
            order = session.execute(
                select(Order).where(Order.order_number == order_number).with_for_update()
            ).scalar_one_or_none()
            if order is None:
                raise OrderNotFoundError(order_number)
            yield session, order
    except StaleDataError as e:
        logger.warning(f"order_stale_write | order_number={order_number} error={e}")
        raise ConcurrentModificationError(f"Order {order_number} was modified concurrently, retry the request")
    finally:
        mutex.release()
