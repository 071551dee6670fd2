"""
Security Alerts Admin API

List, inspect, acknowledge and resolve monitoring alerts, and report
security events raised by other services.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from alignzo.context import AppContext
from alignzo.monitoring import AlertNotFoundError, AlertSeverity
from alignzo.monitoring.middleware import extract_client_address

from .dependencies import get_context


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/security-alerts", tags=["Security Alerts"])


class ActorRequest(BaseModel):
    actor: str = Field(..., min_length=1, description="Email of the acting admin")


class SecurityEventRequest(BaseModel):
    event_type: str = Field(..., min_length=1)
    user_email: str = "anonymous"
    ip_address: Optional[str] = None
    metadata: Dict[str, Any] = {}


class SecurityEventResponse(BaseModel):
    alerts_created: int
    alert_ids: List[str]


@router.get("")
async def list_alerts(
    severity: Optional[AlertSeverity] = Query(None),
    acknowledged: Optional[bool] = Query(None),
    resolved: Optional[bool] = Query(None),
    user_email: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    alerts = context.monitoring.list_alerts(
        severity=severity,
        acknowledged=acknowledged,
        resolved=resolved,
        user_email=user_email,
        limit=limit,
    )
    return {"alerts": [a.to_dict() for a in alerts], "count": len(alerts)}


@router.get("/active")
async def active_alerts(context: AppContext = Depends(get_context)) -> Dict[str, Any]:
    alerts = context.monitoring.get_active_alerts()
    return {"alerts": [a.to_dict() for a in alerts], "count": len(alerts)}


@router.get("/stats")
async def alert_stats(context: AppContext = Depends(get_context)) -> Dict[str, Any]:
    return context.monitoring.get_stats()


@router.post("/events", response_model=SecurityEventResponse)
async def report_event(
    body: SecurityEventRequest,
    request: Request,
    context: AppContext = Depends(get_context),
):
    """Feed a security or audit event into the monitoring engine."""
    alerts = await context.monitoring.process_event(
        body.event_type,
        body.user_email,
        body.ip_address or extract_client_address(request),
        body.metadata,
    )
    return SecurityEventResponse(
        alerts_created=len(alerts),
        alert_ids=[a.id for a in alerts],
    )


@router.get("/{alert_id}")
async def get_alert(alert_id: str, context: AppContext = Depends(get_context)) -> Dict[str, Any]:
    try:
        return context.monitoring.get_alert(alert_id).to_dict()
    except AlertNotFoundError:
        raise HTTPException(status_code=404, detail="Alert not found")


@router.post("/{alert_id}/acknowledge")
async def acknowledge_alert(
    alert_id: str,
    body: ActorRequest,
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    try:
        alert = context.monitoring.acknowledge(alert_id, body.actor)
    except AlertNotFoundError:
        raise HTTPException(status_code=404, detail="Alert not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "success": True,
        "message": "Security alert acknowledged successfully",
        "alert": alert.to_dict(),
    }


@router.post("/{alert_id}/resolve")
async def resolve_alert(
    alert_id: str,
    body: ActorRequest,
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    try:
        alert = context.monitoring.resolve(alert_id, body.actor)
    except AlertNotFoundError:
        raise HTTPException(status_code=404, detail="Alert not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "success": True,
        "message": "Security alert resolved successfully",
        "alert": alert.to_dict(),
    }
