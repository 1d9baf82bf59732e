"""
NATS JetStream Client for the proof service

Publishes domain events (proof.*, seed.*) to NATS JetStream using nats-py.
Subjects equal the event type; one stream per subject prefix.

Usage:
    bus = NATSEventBus("proof_service")
    await bus.connect()
    await bus.publish_event(Event("proof.created", ServiceSource.PROOF_SERVICE, {...}))
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Set

import nats
from nats.aio.client import Client as NATS
from nats.js import JetStreamContext

from core.config import InfraConfig

logger = logging.getLogger(__name__)


class EventJSONEncoder(json.JSONEncoder):
    """Serialises the Decimal, datetime and Enum values events may carry"""

    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


class ServiceSource(Enum):
    """Event sources"""

    PROOF_SERVICE = "proof_service"


@dataclass
class Event:
    """Envelope for one published event"""
    event_type: str
    source: str
    data: Dict[str, Any]
    metadata: Dict[str, str] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    version: str = "1.0.0"

    def __post_init__(self):
        if isinstance(self.event_type, Enum):
            self.event_type = self.event_type.value
        if isinstance(self.source, Enum):
            self.source = self.source.value

    @property
    def stream_prefix(self) -> str:
        return self.event_type.split(".", 1)[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.event_type,
            "source": self.source,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }


class NATSEventBus:
    """NATS JetStream event bus"""

    def __init__(self, service_name: str, config: Optional[InfraConfig] = None):
        self.service_name = service_name
        self.config = config or InfraConfig.from_env()
        self.url = self.config.resolved_nats_url

        self._client: Optional[NATS] = None
        self._js: Optional[JetStreamContext] = None
        self._ready_streams: Set[str] = set()

    async def connect(self):
        """Connect to NATS and open a JetStream context"""
        try:
            self._client = await nats.connect(self.url, name=self.service_name)
            self._js = self._client.jetstream()
            logger.info(f"Connected to NATS at {self.url} as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS at {self.url}: {e}")
            raise

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected

    async def publish_event(self, event: Event) -> bool:
        """
        Publish an event; proof.* goes to proof-stream, seed.* to seed-stream.

        Returns False instead of raising so callers never fail on the bus.
        """
        if not self._js or not self.is_connected:
            logger.error(f"Not connected to NATS, dropping {event.event_type} [{event.id}]")
            return False

        stream = f"{event.stream_prefix}-stream"
        try:
            await self._ensure_stream(stream, event.stream_prefix)
            payload = json.dumps(event.to_dict(), cls=EventJSONEncoder).encode()
            ack = await self._js.publish(event.event_type, payload, stream=stream)
            logger.info(f"Published {event.event_type} [{event.id}] to {stream}, seq={ack.seq}")
            return True
        except Exception as e:
            logger.error(f"Error publishing {event.event_type} [{event.id}]: {e}")
            return False

    async def _ensure_stream(self, stream: str, prefix: str):
        if stream in self._ready_streams:
            return
        try:
            await self._js.add_stream(name=stream, subjects=[f"{prefix}.>"])
        except Exception as e:
            # An existing stream with the same subjects is fine
            logger.debug(f"Stream {stream} not created: {e}")
        self._ready_streams.add(stream)

    async def close(self):
        """Drain and close the NATS connection"""
        if self._client:
            await self._client.drain()
        self._client = None
        self._js = None
        logger.info("Disconnected from NATS")


__all__ = ["Event", "NATSEventBus", "ServiceSource"]
