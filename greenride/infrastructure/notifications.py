"""
Notification sink (fire-and-forget).

The engine decides *what* to tell whom; delivery (SMS / email / push) is a
separate consumer subscribed to the Redis channel.  A failed publish is
logged and dropped -- it never rolls back the state transition that caused
it.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisNotifier:
    def __init__(self, client: aioredis.Redis, channel: str):
        self.redis = client
        self.channel = channel

    async def notify(self, recipient_id: int, event: str, **payload: Any) -> None:
        message = json.dumps(
            {"recipient_id": recipient_id, "event": event, "payload": payload},
            default=str,
        )
        try:
            await self.redis.publish(self.channel, message)
        except RedisError:
            logger.warning(
                "Notification %s for user %s dropped", event, recipient_id,
                exc_info=True,
            )
