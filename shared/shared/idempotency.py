LEASE_PREFIX = "lease"

# Deletes the key only if it still holds our token, so an expired lease that
# was re-acquired by someone else is never released by the old holder.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""

def lease_key(key: str) -> str:
    return f"{LEASE_PREFIX}:{key}"

async def acquire_lease(redis_client, key: str, token: str, ttl_seconds: int) -> bool:
    return bool(await redis_client.set(lease_key(key), token, nx=True, ex=ttl_seconds))

async def release_lease(redis_client, key: str, token: str) -> bool:
    return bool(await redis_client.eval(_RELEASE_SCRIPT, 1, lease_key(key), token))
