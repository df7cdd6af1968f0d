"""Agent call endpoints: initiation, provider callbacks and retries."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from callbridge.api.params import client_host, parse_int, read_callback_params
from callbridge.core.dependencies import (
    get_dispatcher,
    get_initiator,
    get_lifecycle_service,
    get_retry_service,
    get_scheduler,
)
from callbridge.services.agent_call.initiator import AgentCallInitiator
from callbridge.services.agent_call.lifecycle import AgentCallLifecycleService
from callbridge.services.agent_call.planetkit_client import AgentCallError
from callbridge.services.agent_call.retry import RetryService, RetrySchedulingError
from callbridge.services.agent_call.scheduler import AgentCallScheduler, OUTCOME_ALREADY_PROCESSED
from callbridge.services.notifications.dispatcher import NotificationDispatcher

router = APIRouter()
logger = logging.getLogger(__name__)


class AgentCallInitiateRequest(BaseModel):
    """Agent call initiation request."""
    toUserId: Optional[str] = None
    toServiceId: Optional[str] = None
    callerUserId: Optional[str] = None
    callerServiceId: Optional[str] = None
    audioFileIds: List[str] = []
    language: str = "ko"
    isRetry: bool = False
    parentSid: Optional[str] = None
    retryAttempt: int = 0


class ScheduleRetryRequest(BaseModel):
    sid: Optional[str] = None
    userId: Optional[str] = None


class ExecuteRetryRequest(BaseModel):
    queueId: Optional[int] = None


@router.post("/api/agent-call-initiate")
async def initiate_agent_call(
    request: Request,
    body: AgentCallInitiateRequest,
    initiator: AgentCallInitiator = Depends(get_initiator),
):
    """Place an outbound agent call and record it as initiated."""
    logger.info(
        f"[AGENT CALL INITIATE] Request received - to_user_id: {body.toUserId}, "
        f"Client: {client_host(request)}"
    )
    try:
        session = await initiator.initiate(
            to_user_id=body.toUserId,
            to_service_id=body.toServiceId,
            caller_user_id=body.callerUserId,
            caller_service_id=body.callerServiceId,
            audio_file_ids=body.audioFileIds,
            language=body.language,
            parent_sid=body.parentSid,
            retry_attempt=body.retryAttempt,
            is_retry=body.isRetry,
        )
    except AgentCallError as e:
        logger.error(f"[AGENT CALL INITIATE] Failed - error: {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return {
        "success": True,
        "sid": session.sid,
        "roomId": session.room_id,
        "mock": bool((session.data or {}).get("mock")),
        "message": "Agent call initiated. Notify callback will send LINE message with cc_param.",
    }


@router.api_route("/api/agent-call-callback", methods=["GET", "POST"])
async def agent_call_callback(
    request: Request,
    lifecycle: AgentCallLifecycleService = Depends(get_lifecycle_service),
):
    """Delivery result from the provider. Answers 200 whenever a sid is present."""
    params = await read_callback_params(request)
    sid = params.pop("sid", None)
    logger.info(
        f"[AGENT CALL CALLBACK] Received - sid: {sid}, result: {params.get('result')}, "
        f"method: {request.method}"
    )
    if not sid:
        raise HTTPException(status_code=400, detail="Missing required field: sid")

    result = str(params.pop("result", "") or "")
    fail_reason = params.pop("fail_reason", None)
    timestamp = parse_int(params.pop("timestamp", None))

    await lifecycle.handle_delivery_result(sid, result, fail_reason, timestamp, extra=params)
    return {"success": True, "message": "Callback processed successfully"}


@router.get("/api/notify-callback")
async def notify_callback(
    request: Request,
    lifecycle: AgentCallLifecycleService = Depends(get_lifecycle_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Provider notify callback carrying the cc_param the callee needs to join."""
    params = dict(request.query_params)
    sid = params.get("sid")
    cc_param = params.get("param")
    logger.info(f"[NOTIFY CALLBACK] Received - sid: {sid}, to_user_id: {params.get('to_user_id')}")

    if not sid or not cc_param:
        raise HTTPException(status_code=400, detail="Missing required fields: sid, param")

    details = {
        "from_service_id": params.get("from_service_id"),
        "from_user_id": params.get("from_user_id"),
        "to_service_id": params.get("to_service_id"),
        "to_user_id": params.get("to_user_id"),
        "call_type": params.get("type"),
    }
    language = await lifecycle.record_notify(sid, cc_param, details)

    to_user_id = params.get("to_user_id") or await lifecycle.find_callee(sid)
    if not to_user_id:
        return {"success": True, "message": "Notify callback received but callee is unknown"}

    try:
        await dispatcher.send_agent_call_link(to_user_id, sid, cc_param, language)
    except Exception as e:
        logger.error(f"[NOTIFY CALLBACK] LINE message failed - sid: {sid}, error: {e}", exc_info=True)
        return {"success": True, "message": "Notify callback received but LINE message failed"}

    return {"success": True, "message": "Notify callback processed and LINE message sent"}


@router.api_route("/api/one-to-one-call-callback", methods=["GET", "POST"])
async def one_to_one_call_callback(
    request: Request,
    lifecycle: AgentCallLifecycleService = Depends(get_lifecycle_service),
):
    """1:1 call lifecycle events (connected, disconnected, released)."""
    params = await read_callback_params(request)
    call_id = params.get("cc_call_id") or params.get("sid")
    event_type = params.get("event_type")
    logger.info(f"[ONE TO ONE CALLBACK] Received - call_id: {call_id}, event_type: {event_type}")

    if not call_id:
        return {"success": True, "message": "Callback received (no call ID found, dry run?)"}

    await lifecycle.handle_one_to_one_event(
        call_id,
        event_type,
        timestamp=parse_int(params.get("timestamp")),
        data=params,
    )
    return {"success": True, "message": "Callback processed successfully"}


@router.post("/api/schedule-retry")
async def schedule_retry(
    body: ScheduleRetryRequest,
    retry_service: RetryService = Depends(get_retry_service),
):
    """Queue a retry of a missed or failed call at the callee's request."""
    if not body.sid:
        raise HTTPException(status_code=400, detail="Missing required field: sid")

    try:
        scheduled = await retry_service.schedule_retry(body.sid, body.userId)
    except RetrySchedulingError as e:
        logger.info(f"[SCHEDULE RETRY] Rejected - sid: {body.sid}, status: {e.status_code}, reason: {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))

    response = {
        "success": True,
        "queueId": scheduled.queue_id,
        "scheduledAt": scheduled.scheduled_at.isoformat() + "Z",
        "retryAttempt": scheduled.retry_attempt,
    }
    if scheduled.already_scheduled:
        response["alreadyScheduled"] = True
    return response


@router.post("/api/execute-retry")
async def execute_retry(
    body: ExecuteRetryRequest,
    scheduler: AgentCallScheduler = Depends(get_scheduler),
):
    """Run one queued retry immediately."""
    if body.queueId is None:
        raise HTTPException(status_code=400, detail="Missing required field: queueId")

    try:
        outcome = await scheduler.execute_retry(body.queueId)
    except RetrySchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    if outcome.outcome == OUTCOME_ALREADY_PROCESSED:
        return {"success": True, "message": "Retry already processed", "queueId": outcome.queue_id}

    return {
        "success": outcome.error is None,
        "queueId": outcome.queue_id,
        "status": outcome.outcome,
        "retrySid": outcome.retry_sid,
        "error": outcome.error,
    }
