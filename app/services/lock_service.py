import redis
from app.utils.retry import redis_retry
from app.utils.settings import REDIS_URL
from app.utils.logging import get_logger

logger = get_logger(__name__)

#LUA compare and delete, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis runs the lua script as one uninterruptible operation
#nobody can squeeze in between GET and DEL, so a lock that already expired
#and was taken by another checkout is never deleted by us


class LockService:
    """
    -checkout lock per user (one checkout at a time)
    -releasing the lock only by its owner token
    -atomicity with lua
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def _checkout_key(user_id: int) -> str:
        return f"user:{user_id}:checkout:lock"

    @redis_retry()
    def acquire_checkout_lock(self, user_id: int, token: str, ttl: int) -> bool:
        key = self._checkout_key(user_id)
        logger.info(f"Acquire lock {key}")
        #SET user:1:checkout:lock "<token>" NX EX 30
        return bool(
            self.redis.set(
                name=key,
                value=token,
                nx=True, #only if the key does not exist yet
                ex=ttl, #expires by itself if the process dies mid checkout
            )
        )

    @redis_retry()
    def release_checkout_lock(self, user_id: int, token: str) -> bool:
        key = self._checkout_key(user_id)
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)
