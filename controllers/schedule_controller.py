# controllers/schedule_controller.py
import logging
from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from helpers.deps import get_base_client
from helpers.errors import AppError, NotFound
from helpers.ghl_client import GHLClient
from helpers.token_helper import get_current_user
from models.auth import User
from models.schedule import ScheduledPrompt, ScheduleType
from scheduler.prompt_scheduler import compute_next_run, next_run_for, run_prompt

router = APIRouter()
logger = logging.getLogger("prompt_scheduler")


class SchedulePayload(BaseModel):
    locationId: str
    customValueId: str
    customValueName: str
    promptTemplate: str
    scheduleType: ScheduleType = ScheduleType.DAILY
    scheduleTime: str = "09:00"
    scheduleDay: int = 0
    timezone: str = "UTC"


def _serialize(row: ScheduledPrompt) -> dict:
    return {
        "id": row.id,
        "locationId": row.location_id,
        "customValueId": row.custom_value_id,
        "customValueName": row.custom_value_name,
        "promptTemplate": row.prompt_template,
        "scheduleType": row.schedule_type.value if isinstance(row.schedule_type, ScheduleType) else row.schedule_type,
        "scheduleTime": row.schedule_time,
        "scheduleDay": row.schedule_day,
        "timezone": row.timezone,
        "nextRunAt": row.next_run_at,
        "lastRunAt": row.last_run_at,
        "lastResult": row.last_result,
        "lastError": row.last_error,
        "isActive": row.is_active,
    }


async def _owned(schedule_id: int, user: User) -> ScheduledPrompt:
    row = await ScheduledPrompt.get_or_none(id=schedule_id, user_id=user.id)
    if not row:
        raise NotFound("Schedule not found")
    return row


@router.post("/schedule/create")
async def create_schedule(
    payload: SchedulePayload,
    user: Annotated[User, Depends(get_current_user)],
):
    next_run = compute_next_run(
        payload.scheduleType.value,
        payload.scheduleTime,
        schedule_day=payload.scheduleDay,
        tz=payload.timezone,
    )
    row = await ScheduledPrompt.create(
        user=user,
        location_id=payload.locationId,
        custom_value_id=payload.customValueId,
        custom_value_name=payload.customValueName,
        prompt_template=payload.promptTemplate,
        schedule_type=payload.scheduleType,
        schedule_time=payload.scheduleTime.strip(),
        schedule_day=payload.scheduleDay,
        timezone=payload.timezone,
        next_run_at=next_run,
    )
    logger.info("[prompt-sched] created prompt=%s next=%s", row.id, next_run.isoformat())
    return {"success": True, "schedule": _serialize(row)}


@router.get("/schedule/list/{location_id}")
async def list_schedules(
    location_id: str,
    user: Annotated[User, Depends(get_current_user)],
):
    rows = await ScheduledPrompt.filter(user_id=user.id, location_id=location_id).order_by("next_run_at")
    return {"success": True, "schedules": [_serialize(r) for r in rows]}


@router.put("/schedule/{schedule_id}/toggle")
async def toggle_schedule(
    schedule_id: int,
    user: Annotated[User, Depends(get_current_user)],
):
    row = await _owned(schedule_id, user)
    row.is_active = not row.is_active
    if row.is_active:
        # slots missed while paused are not replayed
        row.next_run_at = next_run_for(row)
        row.claimed_until = None
    await row.save()
    return {"success": True, "schedule": _serialize(row)}


@router.post("/schedule/{schedule_id}/run")
async def run_schedule_now(
    schedule_id: int,
    user: Annotated[User, Depends(get_current_user)],
    base: Annotated[GHLClient, Depends(get_base_client)],
):
    row = await _owned(schedule_id, user)
    now = datetime.now(timezone.utc)
    try:
        text = await run_prompt(base, row)
    except AppError as e:
        await ScheduledPrompt.filter(id=row.id).update(last_run_at=now, last_error=e.message)
        raise
    await ScheduledPrompt.filter(id=row.id).update(last_run_at=now, last_result=text, last_error=None)
    return {"success": True, "generatedText": text}


@router.delete("/schedule/{schedule_id}")
async def delete_schedule(
    schedule_id: int,
    user: Annotated[User, Depends(get_current_user)],
):
    row = await _owned(schedule_id, user)
    await row.delete()
    return {"success": True}
