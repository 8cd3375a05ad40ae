"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure the application knows how to describe is a TaskhubError.
Each subclass carries the HTTP status code the handler layer should use
when the error reaches an HTTP client:

    ┌──────────────────────┬────────┬──────────────────────────────────────┐
    │ Error                │ Status │ Raised by                            │
    ├──────────────────────┼────────┼──────────────────────────────────────┤
    │ ValidationError      │  400   │ TaskStore.add (empty text)           │
    │ NotFoundError        │  404   │ TaskStore.toggle / get (unknown id)  │
    │ NoRouteFound         │  404   │ Router.resolve (nothing matched)     │
    │ MalformedMessage     │  400   │ ws.envelope.decode_envelope          │
    └──────────────────────┴────────┴──────────────────────────────────────┘

Over the WebSocket nothing is surfaced: the hub swallows these and keeps
the socket open.
"""


class TaskhubError(Exception):
    """Base class for application errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TaskhubError):
    """Input failed validation (e.g. empty task text)."""

    status_code = 400


class NotFoundError(TaskhubError):
    """No task with the given id exists."""

    status_code = 404

    def __init__(self, task_id: str):
        super().__init__(f"Task with id '{task_id}' not found")
        self.task_id = task_id


class NoRouteFound(TaskhubError):
    """The router has no handler at any level for (method, path)."""

    status_code = 404

    def __init__(self, method: str, path: str):
        super().__init__(f"No route matches {method} {path}")
        self.method = method
        self.path = path


class MalformedMessage(TaskhubError):
    """A WebSocket frame is not a well-formed command envelope."""

    status_code = 400
