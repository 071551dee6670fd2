"""
Request monitoring for FastAPI handlers.

Usage:
    @router.post("/login")
    @monitored(SecurityEventType.LOGIN_ATTEMPT)
    async def login(request: Request, ...):
        ...

The handler must accept a ``request: Request`` parameter. The engine is
read from ``request.app.state.context.monitoring``.
"""

import functools
import logging
from typing import Any, Callable, Optional, Union

from fastapi import Request

from alignzo.monitoring.engine import MonitoringEngine
from alignzo.monitoring.models import SecurityEventType

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"
USER_HEADER = "x-user-email"


def extract_client_address(request: Request) -> str:
    """Originating client address: first forwarded hop, real-ip header, then peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def extract_user_email(request: Request) -> str:
    return request.headers.get(USER_HEADER) or ANONYMOUS


def _engine_from(request: Request) -> Optional[MonitoringEngine]:
    context = getattr(request.app.state, "context", None)
    return getattr(context, "monitoring", None)


def _find_request(args: tuple, kwargs: dict) -> Optional[Request]:
    for value in list(args) + list(kwargs.values()):
        if isinstance(value, Request):
            return value
    return None


def monitored(event_type: Union[SecurityEventType, str]):
    """
    Feed an event into the monitoring engine after the handler succeeds.

    If the handler raises, a suspicious-activity event carrying the error
    is recorded instead and the exception propagates unchanged.
    """
    event_name = event_type.value if isinstance(event_type, SecurityEventType) else event_type

    def decorator(handler: Callable[..., Any]):
        @functools.wraps(handler)
        async def wrapper(*args, **kwargs):
            request = _find_request(args, kwargs)
            engine = _engine_from(request) if request is not None else None
            if engine is None:
                return await handler(*args, **kwargs)

            user_email = extract_user_email(request)
            address = extract_client_address(request)
            try:
                response = await handler(*args, **kwargs)
            except Exception as e:
                await engine.process_event(
                    SecurityEventType.SUSPICIOUS_ACTIVITY.value,
                    user_email,
                    address,
                    {"error": str(e), "endpoint": request.url.path},
                )
                raise

            await engine.process_event(event_name, user_email, address)
            return response

        return wrapper

    return decorator
