from redis import Redis
from typing import Optional
from redis.lock import Lock

from communibus.src import exceptions
from communibus.src.constants import (
    REDIS_HOST,
    REDIS_PORT,
    REDIS_PASSWORD,
    MUTEX_LOCK_TIMEOUT,
    MUTEX_LOCK_MAX_WAIT_TIME,
)

redisClient = Redis(
    host=REDIS_HOST,
    port=REDIS_PORT,
    password=REDIS_PASSWORD,
    decode_responses=True,
)


def lockName(tableName: str, pk: Optional[int] = None) -> str:
    """
    Key of the mutex guarding a table, or one row of it.

    Example:
        >>> lockName("route_proposal", 3)
        'lock:route_proposal:3'
    """
    if pk is None:
        return f"lock:{tableName}"
    return f"lock:{tableName}:{pk}"


def acquireLock(
    tableName: str,
    pk: Optional[int] = None,
    timeOut: int = MUTEX_LOCK_TIMEOUT,
    blockingTimeOut: float = MUTEX_LOCK_MAX_WAIT_TIME,
) -> Lock:
    """
    Block until the mutex named by `lockName(tableName, pk)` is ours.

    Every writer of a route proposal's vote totals or review state holds
    the proposal's row mutex for the whole read-count-write sequence, so
    concurrent pledges are counted exactly once.

    Args:
        tableName (str): Table the lock guards.
        pk (Optional[int]): Row primary key, or None for the whole table.
        timeOut (int): Seconds after which Redis expires a forgotten lock.
        blockingTimeOut (float): Seconds to wait before giving up.

    Raises:
        exceptions.LockAcquireTimeout: Another request kept the lock for too long.
    """
    try:
        lock = redisClient.lock(lockName(tableName, pk), timeout=timeOut)
        if not lock.acquire(blocking=True, blocking_timeout=blockingTimeOut):
            raise exceptions.LockAcquireTimeout()
        return lock
    except Exception as e:
        exceptions.handle(e)


def releaseLock(lock: Optional[Lock]) -> None:
    """Release a lock we still own. Expired or foreign locks are left alone."""
    if lock is None:
        return
    if lock.locked() and lock.owned():
        lock.release()
