# scheduler/prompt_scheduler.py
"""
Re-runs scheduled prompts and pushes the generated text into GHL.

One APScheduler interval job calls run_due_prompts() every PROMPT_SCHED_EVERY_SECONDS.
Rows are claimed with a short lease (conditional update on claimed_until) before
any work happens, so a second scheduler instance skips rows that are already taken.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from tortoise.expressions import Q

from helpers.ai_generator import generate, resolve_ai_credentials
from helpers.deps import client_for_user
from helpers.errors import BadRequest
from helpers.ghl_client import GHLClient
from helpers.ghl_config import scheduler_config
from helpers.template_engine import render_prompt
from models.auth import User
from models.schedule import ScheduledPrompt, ScheduleType

logger = logging.getLogger("prompt_scheduler")

JOB_ID = "scheduled-prompts-sweep"

_scheduler: Optional[AsyncIOScheduler] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_schedule_time(value: str):
    try:
        hh, mm = (value or "").strip().split(":")
        hour, minute = int(hh), int(mm)
    except ValueError:
        raise BadRequest(f"schedule_time must be HH:MM, got {value!r}")
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise BadRequest(f"schedule_time out of range: {value!r}")
    return hour, minute


def _zone(tz: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        raise BadRequest(f"Unknown timezone {tz!r}")


def compute_next_run(
    schedule_type: str,
    schedule_time: str,
    now: Optional[datetime] = None,
    schedule_day: int = 0,
    tz: str = "UTC",
) -> datetime:
    """
    Next instant strictly after `now` that matches the schedule, returned in UTC.

    daily   - today at HH:MM, or tomorrow if that has passed
    weekly  - the next `schedule_day` (0=Mon) at HH:MM
    monthly - the 1st of this month at HH:MM, or the 1st of next month if that has passed
    """
    try:
        kind = ScheduleType(schedule_type)
    except ValueError:
        raise BadRequest(f"schedule_type must be one of {[s.value for s in ScheduleType]}")
    hour, minute = parse_schedule_time(schedule_time)
    zone = _zone(tz)
    local_now = _as_utc(now or _utcnow()).astimezone(zone)

    if kind == ScheduleType.DAILY:
        candidate = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
        if candidate <= local_now:
            candidate += timedelta(days=1)

    elif kind == ScheduleType.WEEKLY:
        if not 0 <= int(schedule_day) <= 6:
            raise BadRequest("schedule_day must be 0 (Mon) .. 6 (Sun)")
        candidate = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
        candidate += timedelta(days=(int(schedule_day) - candidate.weekday()) % 7)
        if candidate <= local_now:
            candidate += timedelta(days=7)

    else:
        candidate = local_now.replace(day=1, hour=hour, minute=minute, second=0, microsecond=0)
        if candidate <= local_now:
            if candidate.month == 12:
                candidate = candidate.replace(year=candidate.year + 1, month=1)
            else:
                candidate = candidate.replace(month=candidate.month + 1)

    return candidate.astimezone(timezone.utc)


def next_run_for(row: ScheduledPrompt, now: Optional[datetime] = None) -> datetime:
    return compute_next_run(
        row.schedule_type.value if isinstance(row.schedule_type, ScheduleType) else row.schedule_type,
        row.schedule_time,
        now=now,
        schedule_day=row.schedule_day,
        tz=row.timezone,
    )


async def _claim(row: ScheduledPrompt, now: datetime, lease_seconds: int) -> bool:
    claimed = await (
        ScheduledPrompt.filter(id=row.id, is_active=True)
        .filter(Q(claimed_until__isnull=True) | Q(claimed_until__lt=now))
        .update(claimed_until=now + timedelta(seconds=lease_seconds))
    )
    return claimed == 1


async def run_prompt(base_client: GHLClient, row: ScheduledPrompt) -> str:
    """Render, generate and push one prompt. Raises on any failure."""
    user = await User.get(id=row.user_id)
    client = client_for_user(base_client, row.user_id)
    processed = await render_prompt(client, row.location_id, row.location_id, row.prompt_template)
    creds = resolve_ai_credentials(user)
    text = await generate(processed, creds["provider"], creds["api_key"], creds["model"])
    await client.update_custom_value(
        row.location_id,
        row.location_id,
        row.custom_value_id,
        {"name": row.custom_value_name, "value": text},
    )
    return text


async def run_due_prompts(base_client: GHLClient, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    One sweep. Every due row is handled on its own: a failure is logged and stored on the row,
    the row's slot is advanced, and the sweep moves on.
    """
    now = _as_utc(now or _utcnow())
    lease = scheduler_config()["lease_seconds"]
    rows = await ScheduledPrompt.filter(is_active=True, next_run_at__lte=now).order_by("next_run_at")

    summary = {"processed": 0, "succeeded": 0, "failed": 0, "skipped": 0}
    for row in rows:
        if not await _claim(row, now, lease):
            summary["skipped"] += 1
            continue
        summary["processed"] += 1
        update: Dict[str, Any] = {"claimed_until": None, "last_run_at": now}
        try:
            text = await run_prompt(base_client, row)
            update.update(last_result=text, last_error=None)
            summary["succeeded"] += 1
            logger.info("[prompt-sched] prompt=%s location=%s updated %s", row.id, row.location_id, row.custom_value_name)
        except Exception as e:
            update["last_error"] = str(e)[:1000]
            summary["failed"] += 1
            logger.exception("[prompt-sched] prompt=%s location=%s failed", row.id, row.location_id)
        try:
            update["next_run_at"] = next_run_for(row, now)
        except BadRequest as e:
            # a row with a broken schedule is parked instead of firing every sweep
            update.update(is_active=False, last_error=e.message)
        await ScheduledPrompt.filter(id=row.id).update(**update)

    if rows:
        logger.info("[prompt-sched] sweep %s", summary)
    return summary


def get_scheduler() -> AsyncIOScheduler:
    global _scheduler
    if _scheduler and _scheduler.running:
        return _scheduler

    _scheduler = AsyncIOScheduler(
        timezone=scheduler_config()["timezone"],
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 60,
        },
    )
    _scheduler.start()
    return _scheduler


def start_prompt_scheduler(base_client: GHLClient) -> Optional[AsyncIOScheduler]:
    cfg = scheduler_config()
    if not cfg["enabled"]:
        logger.info("[prompt-sched] disabled")
        return None
    sch = get_scheduler()
    sch.add_job(
        run_due_prompts,
        IntervalTrigger(seconds=cfg["every_seconds"]),
        args=[base_client],
        id=JOB_ID,
        replace_existing=True,
    )
    logger.info("[prompt-sched] started every=%ss", cfg["every_seconds"])
    return sch


def shutdown_scheduler(wait: bool = False):
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=wait)
    _scheduler = None
