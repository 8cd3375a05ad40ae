"""
=============================================================================
WEBSOCKET ENVELOPES
=============================================================================

Every WebSocket text frame carries one JSON object.

INBOUND (client → server), discriminated by "action":

    {"action": "get_tasks"}
    {"action": "add_task",    "text": "buy milk"}
    {"action": "toggle_task", "id":   "<task id>"}

OUTBOUND (server → client), discriminated by "type":

    {"type": "tasks_overview",                "tasks": [...]}
    {"type": "task_added",   "task": {...},   "tasks": [...]}
    {"type": "task_toggled", "task": {...},   "tasks": [...]}

decode_envelope() turns a frame into one of the frozen command classes
below, or raises MalformedMessage. An action it does not recognise is
not malformed; it decodes to UnknownAction so the hub can log it.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Union

from ..errors import MalformedMessage
from ..store import Task


@dataclass(frozen=True)
class GetTasks:
    pass


@dataclass(frozen=True)
class AddTask:
    text: str


@dataclass(frozen=True)
class ToggleTask:
    id: str


@dataclass(frozen=True)
class UnknownAction:
    action: str


Command = Union[GetTasks, AddTask, ToggleTask, UnknownAction]


def _require_str(payload: Dict[str, Any], key: str, action: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise MalformedMessage(f"{action}: field '{key}' must be a string")
    return value


def decode_envelope(text: str) -> Command:
    """
    Parse one inbound frame.

    Raises:
        MalformedMessage: Invalid JSON, a non-object, a missing or
            non-string "action", or a payload field of the wrong type.
    """
    try:
        payload = json.loads(text)
    except ValueError as e:
        raise MalformedMessage(f"Invalid JSON: {e}")

    if not isinstance(payload, dict):
        raise MalformedMessage("Envelope must be a JSON object")

    action = payload.get("action")
    if not isinstance(action, str):
        raise MalformedMessage("Envelope is missing a string 'action'")

    if action == "get_tasks":
        return GetTasks()
    if action == "add_task":
        return AddTask(text=_require_str(payload, "text", action))
    if action == "toggle_task":
        return ToggleTask(id=_require_str(payload, "id", action))
    return UnknownAction(action=action)


# =============================================================================
# OUTBOUND
# =============================================================================

def _task_list(tasks: List[Task]) -> List[Dict[str, Any]]:
    return [task.to_dict() for task in tasks]


def tasks_overview(tasks: List[Task]) -> Dict[str, Any]:
    return {"type": "tasks_overview", "tasks": _task_list(tasks)}


def task_added(task: Task, tasks: List[Task]) -> Dict[str, Any]:
    return {"type": "task_added", "task": task.to_dict(), "tasks": _task_list(tasks)}


def task_toggled(task: Task, tasks: List[Task]) -> Dict[str, Any]:
    return {"type": "task_toggled", "task": task.to_dict(), "tasks": _task_list(tasks)}


def encode_envelope(envelope: Dict[str, Any]) -> str:
    return json.dumps(envelope, ensure_ascii=False)
