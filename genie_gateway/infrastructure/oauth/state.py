"""
OAuth State Manager
Issues and validates the `state` parameter of provider connect flows.

States live for five minutes, are bound to the tenant that started the flow
and can be consumed once. Redis holds them when reachable; a process-local
dict is used otherwise (single-instance development).
"""
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from genie_gateway.core.config import get_settings
from genie_gateway.core.logging_config import short_id

logger = logging.getLogger(__name__)

# Fallback storage when Redis is unreachable
_memory_state_storage: Dict[str, Dict[str, Any]] = {}


class OAuthStateError(Exception):
    """Raised when OAuth state validation fails"""
    pass


class OAuthStateManager:
    """
    create_state() before redirecting to the provider's consent page;
    validate_state() in the callback returns the stored tenant binding.
    """

    STATE_TTL_SECONDS = 300
    STATE_KEY_PREFIX = "oauth_state:"

    def __init__(self, redis_url: Optional[str] = None, use_memory: bool = False):
        self.redis_url = redis_url or get_settings().redis_url
        self._redis: Optional[aioredis.Redis] = None
        self._use_memory = use_memory

    async def _get_redis(self) -> Optional[aioredis.Redis]:
        if self._use_memory:
            return None
        if self._redis is not None:
            return self._redis

        client = aioredis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.warning(f"Redis not available ({e}), keeping OAuth state in memory")
            self._use_memory = True
            return None

        logger.info("Connected to Redis for OAuth state storage")
        self._redis = client
        return client

    async def _put(self, state: str, data: Dict[str, Any]) -> None:
        redis = await self._get_redis()
        if redis is None:
            now = datetime.now(timezone.utc)
            for key, stored in list(_memory_state_storage.items()):
                if datetime.fromisoformat(stored["expires_at"]) < now:
                    del _memory_state_storage[key]
            _memory_state_storage[state] = data
            return

        try:
            await redis.setex(f"{self.STATE_KEY_PREFIX}{state}", self.STATE_TTL_SECONDS, json.dumps(data))
        except RedisError as e:
            logger.error(f"Failed to store OAuth state: {e}")
            raise OAuthStateError(f"Failed to create OAuth state: {e}")

    async def _take(self, state: str) -> Optional[Dict[str, Any]]:
        """Remove and return the stored data, or None when unknown/expired."""
        redis = await self._get_redis()
        if redis is None:
            data = _memory_state_storage.pop(state, None)
            if data and datetime.now(timezone.utc) > datetime.fromisoformat(data["expires_at"]):
                return None
            return data

        key = f"{self.STATE_KEY_PREFIX}{state}"
        try:
            async with redis.pipeline(transaction=True) as pipe:
                pipe.get(key)
                pipe.delete(key)
                raw, _ = await pipe.execute()
        except RedisError as e:
            logger.error(f"Failed to read OAuth state: {e}")
            raise OAuthStateError(f"Failed to validate OAuth state: {e}")
        return json.loads(raw) if raw else None

    async def create_state(
        self,
        tenant_id: str,
        user_id: str,
        provider: str,
        redirect_uri: str,
        extra_data: Optional[Dict[str, Any]] = None
    ) -> str:
        """Store a new state bound to the tenant and return it."""
        state = str(uuid.uuid4())
        now = datetime.now(timezone.utc)

        await self._put(state, {
            "tenant_id": tenant_id,
            "user_id": user_id,
            "provider": provider,
            "redirect_uri": redirect_uri,
            "created_at": now.isoformat(),
            "expires_at": (now + timedelta(seconds=self.STATE_TTL_SECONDS)).isoformat(),
            **(extra_data or {})
        })

        logger.info(f"Created {provider} OAuth state for tenant {short_id(tenant_id)}")
        return state

    async def validate_state(
        self,
        state: str,
        expected_tenant_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Consume a state and return its stored data.

        Raises:
            OAuthStateError: unknown, expired, or bound to another tenant
        """
        if not state:
            raise OAuthStateError("OAuth state missing")

        data = await self._take(state)
        if data is None:
            logger.warning(f"OAuth state not found or expired: {state[:8]}...")
            raise OAuthStateError("OAuth state not found or expired")

        if expected_tenant_id and data.get("tenant_id") != expected_tenant_id:
            logger.warning(
                f"OAuth state tenant mismatch: expected {short_id(expected_tenant_id)}, "
                f"got {short_id(data.get('tenant_id'))}"
            )
            raise OAuthStateError("OAuth state tenant mismatch")

        return data

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


_oauth_state_manager: Optional[OAuthStateManager] = None


def get_oauth_state_manager() -> OAuthStateManager:
    """Get singleton OAuth state manager."""
    global _oauth_state_manager
    if _oauth_state_manager is None:
        _oauth_state_manager = OAuthStateManager()
    return _oauth_state_manager
