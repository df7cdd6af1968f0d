"""Endpoints triggered by the external timer."""
import logging

from fastapi import APIRouter, Depends

from callbridge.core.dependencies import get_scheduler, verify_cron_secret
from callbridge.services.agent_call.scheduler import AgentCallScheduler

router = APIRouter(dependencies=[Depends(verify_cron_secret)])
logger = logging.getLogger(__name__)


@router.api_route("/api/cron/execute-retries", methods=["GET", "POST"])
async def execute_retries(scheduler: AgentCallScheduler = Depends(get_scheduler)):
    """Place the retry calls that are due."""
    logger.info("[CRON RETRIES] Run started")
    result = await scheduler.execute_due_retries()
    return {"success": True, **result.model_dump()}


@router.api_route("/api/cron/check-timeouts", methods=["GET", "POST"])
async def check_timeouts(scheduler: AgentCallScheduler = Depends(get_scheduler)):
    """Time out calls that were never answered."""
    logger.info("[CRON TIMEOUTS] Run started")
    result = await scheduler.check_timeouts()
    return {"success": True, **result.model_dump()}
