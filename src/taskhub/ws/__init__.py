"""
WebSocket layer.

    envelope.py   JSON envelopes ⇄ command objects
    hub.py        channel registry, command execution, broadcast
    session.py    one upgraded connection driven through websockets' ServerProtocol
"""

from .envelope import (
    AddTask,
    Command,
    GetTasks,
    ToggleTask,
    UnknownAction,
    decode_envelope,
    encode_envelope,
    task_added,
    task_toggled,
    tasks_overview,
)
from .hub import Channel, WsHub
from .session import WebSocketSession


__all__ = [
    "AddTask",
    "Command",
    "GetTasks",
    "ToggleTask",
    "UnknownAction",
    "decode_envelope",
    "encode_envelope",
    "task_added",
    "task_toggled",
    "tasks_overview",
    "Channel",
    "WsHub",
    "WebSocketSession",
]
