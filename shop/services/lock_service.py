import uuid
from contextlib import contextmanager

import redis

from shop.domain.errors import ConcurrentModification
from shop.utils.retry import redis_retry
from shop.utils.settings import REDIS_URL, ORDER_LOCK_TTL_SECONDS
from shop.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje skrypt lua atomowo, nie mozna wcisnac sie miedzy GET a DEL


class LockService:
    """
    -blokada operacji pienieznych na zamowieniu (zwroty, zatwierdzenie anulowania)
    -zwalnianie locka tylko przez wlasciciela
    -atomowosc przy pomocy lua
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def _key(order_id: str) -> str:
        return f"order:{order_id}:refund-lock"

    @redis_retry()
    def acquire_order_lock(self, order_id: str, owner: str, ttl: int) -> bool:
        key = self._key(order_id)
        logger.info(f"Acquire lock {key} for {owner}")
        #SET order:ORD-1:refund-lock "<owner>" NX EX 30
        return bool(self.redis.set(name=key, value=owner, nx=True, ex=ttl))

    @redis_retry()
    def release_order_lock(self, order_id: str, owner: str) -> bool:
        key = self._key(order_id)
        logger.info(f"Release lock {key} for {owner}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, owner)
        return bool(res)

    @contextmanager
    def order_lock(self, order_id: str, ttl: int = ORDER_LOCK_TTL_SECONDS):
        owner = uuid.uuid4().hex
        if not self.acquire_order_lock(order_id, owner, ttl):
            raise ConcurrentModification(
                f"Another payment operation is in progress for order {order_id}"
            )
        try:
            yield
        finally:
            self.release_order_lock(order_id, owner)
