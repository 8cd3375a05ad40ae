"""
=============================================================================
WEBSOCKET HUB
=============================================================================

Tracks connected channels, executes inbound commands against the
TaskStore and fans results out.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          WsHub                                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   channel 1 ──{"action":"add_task","text":"buy milk"}──►            │
    │                                                                      │
    │        decode_envelope()        ──► AddTask("buy milk")             │
    │        with store.lock:                                              │
    │            store.add()          ──► Task                            │
    │            broadcast(task_added)──► channel 1, channel 2, ...       │
    │                                                                      │
    │   channel 2 ──{"action":"get_tasks"}──►                              │
    │        with store.lock:                                              │
    │            push(2, tasks_overview)  ──► channel 2 only              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The hub and the store share one re-entrant lock. Registration, removal,
every mutation and the broadcast that reports it all run under it, so
every client sees mutations in commit order and no broadcast ever goes
to a half-registered channel.

Sends never block under the lock. A channel only queues the text and
writes it from its own thread, so a stalled client cannot hold up HTTP
mutations. Delivery is at-most-once: a channel that refuses a message
(its queue is full or its socket failed) is dropped, its connection is
aborted, and the message is never retried.

Bad input never reaches the client as an error. Malformed frames, empty
task text and unknown ids are logged and ignored, and the socket stays
open.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..errors import MalformedMessage, NotFoundError, ValidationError
from ..store import TaskStore
from .envelope import (
    AddTask,
    GetTasks,
    ToggleTask,
    UnknownAction,
    decode_envelope,
    encode_envelope,
    task_added,
    task_toggled,
    tasks_overview,
)


logger = logging.getLogger(__name__)


class Channel(ABC):
    """One connected WebSocket client, as the hub sees it."""

    channel_id: int

    @abstractmethod
    def send_text(self, text: str) -> bool:
        """Queue one text frame without blocking. False if it cannot be taken."""

    @abstractmethod
    def abort(self) -> None:
        """Tear down the underlying connection; the client sees it close."""


class WsHub:

    def __init__(self, store: TaskStore):
        self.store = store
        self.lock = store.lock
        self._channels: Dict[int, Channel] = {}
        self._ids = itertools.count(1)

    # ─────────────────────────────────────────────────────────────────────
    # MEMBERSHIP
    # ─────────────────────────────────────────────────────────────────────

    def next_channel_id(self) -> int:
        with self.lock:
            return next(self._ids)

    def connect(self, channel: Channel) -> None:
        with self.lock:
            self._channels[channel.channel_id] = channel
            count = len(self._channels)
        logger.info(f"WebSocket channel {channel.channel_id} connected ({count} open)")

    def disconnect(self, channel_id: int) -> None:
        with self.lock:
            removed = self._channels.pop(channel_id, None)
            count = len(self._channels)
        if removed is not None:
            logger.info(f"WebSocket channel {channel_id} disconnected ({count} open)")

    @property
    def connection_count(self) -> int:
        with self.lock:
            return len(self._channels)

    def channel_ids(self) -> List[int]:
        with self.lock:
            return sorted(self._channels)

    # ─────────────────────────────────────────────────────────────────────
    # INBOUND
    # ─────────────────────────────────────────────────────────────────────

    def handle_text(self, channel_id: int, text: str) -> None:
        """Execute one text frame from ``channel_id``."""
        try:
            command = decode_envelope(text)
        except MalformedMessage as e:
            logger.debug(f"Channel {channel_id}: dropping malformed frame: {e}")
            return

        if isinstance(command, GetTasks):
            with self.lock:
                self.push(channel_id, tasks_overview(self.store.list()))

        elif isinstance(command, AddTask):
            with self.lock:
                try:
                    task = self.store.add(command.text)
                except ValidationError as e:
                    logger.debug(f"Channel {channel_id}: add_task rejected: {e}")
                    return
                self.broadcast(task_added(task, self.store.list()))

        elif isinstance(command, ToggleTask):
            with self.lock:
                try:
                    task = self.store.toggle(command.id)
                except NotFoundError as e:
                    logger.debug(f"Channel {channel_id}: toggle_task rejected: {e}")
                    return
                self.broadcast(task_toggled(task, self.store.list()))

        elif isinstance(command, UnknownAction):
            logger.info(f"Channel {channel_id}: unknown WebSocket action {command.action!r}")

    def handle_frame(self, channel_id: int, kind: str) -> None:
        """
        Note a non-text frame ("binary", "ping", "pong" or "close").

        A close frame ends the channel's membership straight away.
        """
        logger.debug(f"Channel {channel_id}: received {kind} frame")
        if kind == "close":
            self.disconnect(channel_id)

    # ─────────────────────────────────────────────────────────────────────
    # OUTBOUND
    # ─────────────────────────────────────────────────────────────────────

    def push(self, channel_id: int, envelope: Dict[str, Any]) -> bool:
        """Send to one channel. Returns False if it is unknown or failed."""
        text = encode_envelope(envelope)
        with self.lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                return False
            if channel.send_text(text):
                return True
            self.drop(channel_id)
            return False

    def broadcast(self, envelope: Dict[str, Any]) -> int:
        """
        Send the same envelope to every channel.

        Returns:
            Number of channels that accepted it.
        """
        text = encode_envelope(envelope)
        delivered = 0
        with self.lock:
            for channel_id, channel in list(self._channels.items()):
                if channel.send_text(text):
                    delivered += 1
                else:
                    self.drop(channel_id)
        return delivered

    def drop(self, channel_id: int) -> None:
        """Forget a channel that fell behind or failed, and abort its connection."""
        with self.lock:
            channel = self._channels.pop(channel_id, None)
        if channel is None:
            return
        logger.warning(f"WebSocket channel {channel_id} dropped after a failed send")
        channel.abort()
