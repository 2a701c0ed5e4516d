"""
Event relay for real-time notifications.

Domain services queue events in a PendingEvents buffer while they work and
flush it after their transaction commits. The relay publishes each event as
JSON on a Redis pub/sub channel ``{prefix}:{scope}`` where the websocket
gateway fans it out to connected clients. Delivery is at-most-once: a
failure is logged and dropped, never raised back into the mutation.
"""

import logging
import json
from typing import Any, Dict, List, Optional
from datetime import datetime, date
from decimal import Decimal
from uuid import UUID

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask

logger = logging.getLogger(__name__)

# Event names
RFQ_CREATED = 'rfq:created'
QUOTE_UPDATED = 'quote:updated'
PRICE_UPDATED = 'price:updated'

# Inner event names wrapped by quote:updated
QUOTE_RESPONDED = 'quote:responded'
QUOTE_COUNTERED = 'quote:countered'
QUOTE_ACCEPTED = 'quote:accepted'
QUOTE_REJECTED = 'quote:rejected'
QUOTE_CANCELLED = 'quote:cancelled'


def tenant_scope(tenant_id) -> str:
    return f"tenant:{tenant_id}"


def user_scope(user_id) -> str:
    return f"user:{user_id}"


class Event:
    """A named notification addressed to a tenant or user scope."""

    def __init__(self, name: str, scope: str, payload: Optional[Dict[str, Any]] = None):
        self.name = name
        self.scope = scope
        self.payload = payload or {}

    def __repr__(self):
        return f"<Event(name='{self.name}', scope='{self.scope}')>"

    @property
    def inner_name(self) -> str:
        """Wrapped event name for quote:updated, otherwise the event name."""
        return self.payload.get('event', self.name)

    def to_message(self) -> Dict[str, Any]:
        return {'event': self.name, 'scope': self.scope, 'payload': self.payload}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


class EventRelay:
    """
    Redis pub/sub publisher with graceful degradation.
    
    Channel pattern: {prefix}:{scope}
    """

    def __init__(self, app: Optional[Flask] = None):
        """Initialize event relay."""
        self.client: Optional[redis.Redis] = None
        self._enabled: bool = False
        self._prefix: str = "marketplace"

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Initialize Redis client from Flask app config."""
        self._enabled = app.config.get('EVENTS_ENABLED', True)
        self._prefix = app.config.get('EVENTS_CHANNEL_PREFIX', 'marketplace')
        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')

        if not self._enabled:
            logger.info("[EVENTS] Event relay is DISABLED via config")
            return

        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                socket_keepalive=True,
                max_connections=50,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[EVENTS] Redis connected: {redis_url}")
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[EVENTS] Redis connection failed: {e}. Events DISABLED.")
            self._enabled = False
            self.client = None

    def is_available(self) -> bool:
        """Check if the relay can reach Redis."""
        if not self._enabled or not self.client:
            return False
        try:
            self.client.ping()
            return True
        except (ConnectionError, RedisError):
            return False

    def channel_for(self, scope: str) -> str:
        return f"{self._prefix}:{scope}"

    def publish(self, event: Event) -> bool:
        """Publish one event. Returns False when it was not delivered."""
        if not self._enabled or not self.client:
            logger.debug(f"[EVENTS] Dropped {event.name} for {event.scope} (relay disabled)")
            return False
        try:
            message = json.dumps(event.to_message(), default=_json_default)
            self.client.publish(self.channel_for(event.scope), message)
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[EVENTS] Publish error for {event.name} -> {event.scope}: {e}")
            return False


class PendingEvents:
    """Events collected during a unit of work, published after commit."""

    def __init__(self):
        self.events: List[Event] = []

    def __len__(self):
        return len(self.events)

    def add(self, name: str, scope: str, payload: Optional[Dict[str, Any]] = None) -> Event:
        event = Event(name, scope, payload)
        self.events.append(event)
        return event

    def clear(self) -> None:
        self.events = []

    def flush(self, relay=None) -> int:
        """
        Publish every queued event and empty the buffer.
        
        Must be called only after the transaction committed. Returns the
        number of events the relay accepted.
        """
        relay = relay or get_event_relay()
        delivered = 0
        events, self.events = self.events, []
        for event in events:
            try:
                if relay.publish(event):
                    delivered += 1
            except Exception as e:
                # At-most-once: a broken relay must not surface to the caller
                logger.warning(f"[EVENTS] Relay failure for {event.name} -> {event.scope}: {e}")
        return delivered


_event_relay = None


def init_events(app: Flask) -> None:
    """Initialize event relay singleton."""
    global _event_relay
    _event_relay = EventRelay(app)
    if not hasattr(app, 'extensions'):
        app.extensions = {}
    app.extensions['events'] = _event_relay


def set_event_relay(relay) -> None:
    """Replace the process-wide relay (used by the test suite)."""
    global _event_relay
    _event_relay = relay


def get_event_relay():
    """Get the relay instance; a disabled relay when none was initialized."""
    global _event_relay
    if _event_relay is None:
        _event_relay = EventRelay()
    return _event_relay
