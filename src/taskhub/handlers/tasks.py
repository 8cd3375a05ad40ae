"""
Task endpoints.

    POST /add_task      {"text": "buy milk"}      → 201  Task
    GET  /get_tasks     (optional {"request": ""}) → 200  [Task]
    POST /toggle_task   {"task_id": "<uuid>"}      → 200  Task

HTTP mutations change the store only; WebSocket clients learn about them
the next time they ask for ``get_tasks`` or see a later broadcast.
"""

from ..errors import ValidationError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, created, ok
from ..http.router import Router
from ..store import TaskStore
from .common import api_endpoint, read_json_object


class TaskHandlers:
    """Thin adapters between JSON bodies and the TaskStore."""

    def __init__(self, store: TaskStore):
        self.store = store

    @api_endpoint
    def add_task(self, request: HTTPRequest) -> HTTPResponse:
        body = read_json_object(request)
        task = self.store.add(body.get("text"))
        return created(task.to_dict())

    @api_endpoint
    def get_tasks(self, request: HTTPRequest) -> HTTPResponse:
        # The {"request": ...} body is accepted for compatibility and ignored
        body = read_json_object(request, required=False)
        if "request" in body and not isinstance(body["request"], str):
            raise ValidationError("Field 'request' must be a string")
        return ok([task.to_dict() for task in self.store.list()])

    @api_endpoint
    def toggle_task(self, request: HTTPRequest) -> HTTPResponse:
        body = read_json_object(request)
        task_id = body.get("task_id")
        if not isinstance(task_id, str):
            raise ValidationError("Field 'task_id' must be a string")
        task = self.store.toggle(task_id)
        return ok(task.to_dict())

    def register(self, router: Router) -> None:
        router.post("/add_task")(self.add_task)
        router.get("/get_tasks")(self.get_tasks)
        router.post("/toggle_task")(self.toggle_task)
