"""Context variables for structured logging."""

from contextvars import ContextVar

_request_id: ContextVar[str] = ContextVar("request_id", default="")
_service: ContextVar[str] = ContextVar("service", default="")
_project_id: ContextVar[str] = ContextVar("project_id", default="")
_operation: ContextVar[str] = ContextVar("operation", default="")

_CONTEXT_VARS = {
    "request_id": _request_id,
    "service": _service,
    "project_id": _project_id,
    "operation": _operation,
}


def set_log_context(
    request_id: str | None = None,
    service: str | None = None,
    project_id: str | None = None,
    operation: str | None = None,
) -> None:
    if request_id is not None:
        _request_id.set(request_id)
    if service is not None:
        _service.set(service)
    if project_id is not None:
        _project_id.set(project_id)
    if operation is not None:
        _operation.set(operation)


def get_log_context() -> dict[str, str]:
    return {name: var.get() for name, var in _CONTEXT_VARS.items()}


def clear_log_context() -> None:
    for var in _CONTEXT_VARS.values():
        var.set("")


class LogContext:
    """
    Context manager for temporary log context.

    Usage:
        with LogContext(service="storage", operation="list_buckets"):
            # All logs in this block carry service and operation
            await do_work()
    """

    def __init__(
        self,
        request_id: str | None = None,
        service: str | None = None,
        project_id: str | None = None,
        operation: str | None = None,
    ):
        self.new_context = {
            "request_id": request_id,
            "service": service,
            "project_id": project_id,
            "operation": operation,
        }
        self.old_context: dict[str, str] = {}

    def __enter__(self) -> "LogContext":
        self.old_context = get_log_context()
        set_log_context(**self.new_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        set_log_context(**self.old_context)
        return False
