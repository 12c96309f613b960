"""Channels that relay cluster events to subscribers."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

EVENT_CLUSTER_CONNECTED = "cluster:connected"
EVENT_CLUSTER_TOPOLOGY = "cluster:topology"
EVENT_CLUSTER_DISCONNECTED = "cluster:disconnected"


class Channel:
    """Publish primitive used by the cluster listener."""

    def emit(self, event: str, payload: Optional[str] = None) -> None:
        raise NotImplementedError


class EventLog(Channel):
    """
    Bounded in-memory channel.

    Keeps the most recent events for the HTTP API and notifies optional
    subscriber callbacks synchronously.
    """

    def __init__(self, maxlen: int = 512) -> None:
        self.maxlen = max(1, maxlen)
        self._events: deque = deque(maxlen=self.maxlen)
        self._seq = 0
        self._lock = threading.Lock()
        self._subscribers: List[Callable[[Dict[str, Any]], None]] = []

    def emit(self, event: str, payload: Optional[str] = None) -> None:
        with self._lock:
            self._seq += 1
            record = {
                "id": self._seq,
                "event": event,
                "payload": payload,
                "ts": time.time(),
            }
            self._events.append(record)
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(record)
            except Exception as e:
                logger.error(f"Error in event subscriber for '{event}': {e}")

    def subscribe(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def recent(self, limit: int = 100, since_id: Optional[int] = None) -> List[Dict[str, Any]]:
        with self._lock:
            events = list(self._events)
        if since_id is not None:
            events = [e for e in events if e["id"] > since_id]
        return events[-limit:] if limit > 0 else []

    def names(self) -> List[str]:
        """Event names in emission order."""
        with self._lock:
            return [e["event"] for e in self._events]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class HttpChannel(Channel):
    """Posts events to a remote relay server."""

    def __init__(
        self,
        server_uri: str,
        token: Optional[str] = None,
        timeout_s: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.server_uri = server_uri.rstrip('/')
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Token {token}"

    def emit(self, event: str, payload: Optional[str] = None) -> None:
        try:
            resp = self.session.post(
                f"{self.server_uri}/events",
                json={"event": event, "payload": payload},
                timeout=self.timeout_s,
            )
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            # Delivery problems must not look like cluster failures to the poller
            logger.warning(f"Failed to deliver '{event}' to {self.server_uri}: {e}")
