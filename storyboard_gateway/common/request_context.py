"""
Request Context Module

Request-scoped state (request id, caller credential, diagnostic metadata)
readable from any code running inside the request's async call chain.

Backed by ``contextvars``: asyncio copies the current context into every
task it creates, so concurrently handled requests never observe each
other's state and no parameter threading is needed.
"""

import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterator, Optional, TypeVar

from storyboard_gateway.common.utils import generate_request_id, utc_now

T = TypeVar("T")


@dataclass
class RequestMeta:
    """Diagnostic fields discovered while a request is handled"""

    model: Optional[str] = None
    project_id: Optional[str] = None
    prompt: Optional[str] = None
    entry_point: Optional[str] = None


@dataclass
class RequestContext:
    """
    Request Context

    Created once per inbound request. Only ``meta`` changes after creation,
    through ``update_meta``.
    """

    request_id: str = field(default_factory=generate_request_id)
    user_api_key: Optional[str] = None
    endpoint: str = ""
    started_at: float = field(default_factory=time.perf_counter)
    created_at: datetime = field(default_factory=utc_now)
    meta: RequestMeta = field(default_factory=RequestMeta)

    @property
    def elapsed_ms(self) -> int:
        return max(0, int((time.perf_counter() - self.started_at) * 1000))


_META_FIELDS = frozenset(f.name for f in fields(RequestMeta))

_current: ContextVar[Optional[RequestContext]] = ContextVar(
    "storyboard_request_context", default=None
)


@contextmanager
def request_scope(context: RequestContext) -> Iterator[RequestContext]:
    """
    Make ``context`` the active request context inside the block

    The previous value is restored on exit, also when the block raises.
    """
    token = _current.set(context)
    try:
        yield context
    finally:
        _current.reset(token)


async def run_with_context(
    context: RequestContext,
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    **kwargs: Any,
) -> T:
    """
    Await ``fn(*args, **kwargs)`` with ``context`` active

    Tasks spawned by ``fn`` inherit the context.
    """
    with request_scope(context):
        return await fn(*args, **kwargs)


def activate(context: RequestContext) -> None:
    """
    Make ``context`` active for the rest of the current task

    For response streams, which run in their own task after the handler's
    scope has closed. The value dies with the task's context copy.
    """
    _current.set(context)


def get_context() -> Optional[RequestContext]:
    """Return the active context, or None outside any request scope"""
    return _current.get()


def get_request_id() -> Optional[str]:
    context = _current.get()
    return context.request_id if context else None


def get_user_api_key() -> Optional[str]:
    context = _current.get()
    return context.user_api_key if context else None


def update_meta(**values: Any) -> None:
    """
    Merge diagnostic fields into the active context

    None values are ignored so a later call cannot erase known fields.
    Does nothing outside a request scope.

    Raises:
        TypeError: Unknown field name
    """
    unknown = set(values) - _META_FIELDS
    if unknown:
        raise TypeError(f"Unknown request meta field(s): {', '.join(sorted(unknown))}")

    context = _current.get()
    if context is None:
        return
    for name, value in values.items():
        if value is not None:
            setattr(context.meta, name, value)
