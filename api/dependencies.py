"""Request dependencies shared by the routers."""

from fastapi import HTTPException, Request

from alignzo.context import AppContext


def get_context(request: Request) -> AppContext:
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Application not initialized")
    return context
