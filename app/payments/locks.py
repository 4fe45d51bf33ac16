"""
Distributed locking for scheduled payment jobs.

Payout batching must never run twice at the same time: two overlapping
batches would each sum the same pending commissions. The row-level
"mark paid where still pending" update already makes a double payout
impossible, so the lock is there to avoid wasted work and noisy conflict
errors when beat fires while a slow batch is still running.

Usage:
    from payments.locks import DistributedLock

    with DistributedLock("payouts:batch", ttl=600, blocking=False):
        PayoutBatchService.process_payouts()
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING

from django_redis import get_redis_connection

from payments.exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis

logger = logging.getLogger(__name__)

# Key used by the scheduled payout batch
PAYOUT_BATCH_LOCK_KEY = "payouts:batch"


class DistributedLock:
    """
    Redis lock with a TTL and an ownership token.

    The token is a random UUID stored as the key's value, so a process
    whose lock expired can't delete a lock that has since been taken by
    someone else.

    Args:
        key: Lock identifier (prefixed with "lock:")
        ttl: Seconds before Redis expires the lock on its own
        blocking: Wait for the lock instead of failing immediately
        timeout: Maximum wait in seconds when blocking
    """

    # Delete only if we still own it
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        key: str,
        ttl: int = 30,
        blocking: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._redis: Redis | None = None

    def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def _try_acquire(self, redis: Redis) -> bool:
        return bool(redis.set(self.key, self._token, nx=True, ex=self.ttl))

    def acquire(self) -> bool:
        """
        Take the lock.

        Raises:
            LockAcquisitionError: Lock is held elsewhere (non-blocking) or
                wasn't released within the timeout (blocking)
        """
        self._token = str(uuid.uuid4())
        redis = self._get_redis()

        if not self.blocking:
            if self._try_acquire(redis):
                return True
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )

        deadline = time.monotonic() + self.timeout
        while time.monotonic() < deadline:
            if self._try_acquire(redis):
                return True
            time.sleep(0.05)

        self._token = None
        raise LockAcquisitionError(
            f"Failed to acquire lock '{self.key}' within {self.timeout}s",
            details={"key": self.key, "timeout": self.timeout},
        )

    def release(self) -> bool:
        """Release the lock if we hold it. Safe to call more than once."""
        if self._token is None:
            return False

        result = self._get_redis().eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        if not result:
            logger.warning(
                "Lock expired before release",
                extra={"key": self.key, "ttl": self.ttl},
            )
        return bool(result)

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        self.release()
        return False


__all__ = [
    "PAYOUT_BATCH_LOCK_KEY",
    "DistributedLock",
]
