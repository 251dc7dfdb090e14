"""
Realtime change feed over WebSockets.
Pushes inserted rows to the profile they are addressed to. Each profile may
hold several live connections (one per open tab).
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Any

from fastapi import BackgroundTasks, WebSocket

logger = logging.getLogger(__name__)


class Channel(str, Enum):
    NOTIFICATIONS = "notifications"
    PATIENT_REQUESTS = "patient_requests"


@dataclass
class ChangeEvent:
    """One row change pushed to a subscriber"""
    channel: Channel
    record: Dict[str, Any]
    event: str = "INSERT"

    def to_json(self) -> str:
        return json.dumps({
            "channel": self.channel.value,
            "event": self.event,
            "record": self.record,
        }, default=str)


@dataclass
class Subscriber:
    profile_id: int
    websocket: WebSocket
    connected_at: datetime = field(default_factory=datetime.utcnow)


class RealtimeHub:
    """Tracks connected profiles and delivers change events to them"""

    def __init__(self):
        # profile_id -> live connections
        self.subscribers: Dict[int, List[Subscriber]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, profile_id: int) -> Subscriber:
        await websocket.accept()
        subscriber = Subscriber(profile_id=profile_id, websocket=websocket)
        async with self._lock:
            self.subscribers.setdefault(profile_id, []).append(subscriber)
        logger.info(f"Profile {profile_id} subscribed to realtime feed")
        return subscriber

    async def disconnect(self, subscriber: Subscriber):
        async with self._lock:
            connections = self.subscribers.get(subscriber.profile_id, [])
            if subscriber in connections:
                connections.remove(subscriber)
            if not connections:
                self.subscribers.pop(subscriber.profile_id, None)
        logger.info(f"Profile {subscriber.profile_id} unsubscribed from realtime feed")

    def is_connected(self, profile_id: int) -> bool:
        return bool(self.subscribers.get(profile_id))

    def publish_after_response(self, background_tasks: BackgroundTasks, profile_id: int,
                               channel: Channel, record: Dict[str, Any]) -> None:
        """Queue a publish to run once the committing request has responded"""
        background_tasks.add_task(self.publish, profile_id, channel, record)

    async def publish(self, profile_id: int, channel: Channel, record: Dict[str, Any]) -> int:
        """Send an INSERT event to every connection of `profile_id`; returns deliveries"""
        connections = list(self.subscribers.get(profile_id, []))
        if not connections:
            return 0

        payload = ChangeEvent(channel=channel, record=record).to_json()
        delivered = 0
        for subscriber in connections:
            try:
                await subscriber.websocket.send_text(payload)
                delivered += 1
            except Exception as e:
                logger.error(f"Error publishing to profile {profile_id}: {e}")
                await self.disconnect(subscriber)
        return delivered
