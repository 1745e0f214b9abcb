"""Best-effort realtime delivery over Redis pub/sub.

The database stays the store of record; a message that never reaches a
subscriber is still readable through the normal endpoints.
"""
import json
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

import redis
from fastapi import Request

from core.config import settings

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], None]


def ticket_channel(ticket_id: int) -> str:
    return f"support:ticket:{ticket_id}"


class _FakePubSub:
    """In-process stand-in used when TESTING, handlers run synchronously."""

    def __init__(self):
        self.published: List[tuple[str, Dict[str, Any]]] = []
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def publish(self, channel: str, event: Dict[str, Any]) -> int:
        self.published.append((channel, event))
        for handler in list(self._handlers[channel]):
            handler(event)
        return len(self._handlers[channel])

    def subscribe(self, channel: str, handler: Handler) -> Callable[[], None]:
        self._handlers[channel].append(handler)
        return lambda: self._handlers[channel].remove(handler)


class RedisPublisher:
    def __init__(self, client: "redis.Redis"):
        self.client = client

    def publish(self, channel: str, event: Dict[str, Any]) -> int:
        try:
            return self.client.publish(channel, json.dumps(event, default=str))
        except redis.RedisError as e:
            logger.warning("Realtime publish to %s failed: %s", channel, e)
            return 0

    def subscribe(self, channel: str, handler: Handler) -> Callable[[], None]:
        """Run ``handler`` for each event on a daemon thread; returns an unsubscribe callable."""
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)

        def _on_message(message):
            handler(json.loads(message["data"]))

        pubsub.subscribe(**{channel: _on_message})
        worker = pubsub.run_in_thread(sleep_time=0.5, daemon=True)

        def _stop():
            worker.stop()
            pubsub.close()

        return _stop


def build_publisher():
    if settings.TESTING:
        return _FakePubSub()
    return RedisPublisher(redis.from_url(settings.REDIS_URL, decode_responses=True))


def get_publisher(request: Request):
    return request.app.state.publisher
