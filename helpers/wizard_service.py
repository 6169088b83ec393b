# helpers/wizard_service.py
from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from helpers.errors import AppError, BadRequest, Conflict, Expired, NotFound
from helpers.ghl_client import GHLClient
from models.wizard import SessionStatus, TargetMode, WizardSession, WizardTemplate

logger = logging.getLogger("wizard")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)


def normalize_fields(raw: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Validate template fields and give every field a stable id."""
    out: List[Dict[str, Any]] = []
    for i, f in enumerate(raw or []):
        label = (f.get("label") or "").strip()
        if not label:
            raise BadRequest(f"Field #{i + 1} needs a label")
        try:
            mode = TargetMode(f.get("target_mode") or TargetMode.CREATE_NEW.value)
        except ValueError:
            raise BadRequest(f"Field '{label}': target_mode must be create_new or bind_existing")
        if mode == TargetMode.BIND_EXISTING and not f.get("target_id"):
            raise BadRequest(f"Field '{label}': bind_existing needs target_id")
        out.append({
            "id": str(f.get("id") or uuid.uuid4().hex[:12]),
            "label": label,
            "type": f.get("type") or "text",
            "required": bool(f.get("required", False)),
            "target_mode": mode.value,
            "target_name": (f.get("target_name") or label).strip(),
            "target_id": f.get("target_id"),
        })
    return out


async def create_session(
    template: WizardTemplate,
    client_name: Optional[str] = None,
    client_email: Optional[str] = None,
    ttl_days: int = 7,
) -> WizardSession:
    if ttl_days < 1:
        raise BadRequest("ttl_days must be at least 1")
    return await WizardSession.create(
        template=template,
        access_token=secrets.token_urlsafe(32),
        client_name=client_name,
        client_email=client_email,
        status=SessionStatus.PENDING,
        expires_at=_now() + timedelta(days=ttl_days),
    )


async def fetch_by_token(access_token: str) -> Tuple[WizardSession, WizardTemplate]:
    session = await WizardSession.filter(access_token=access_token).prefetch_related("template").first()
    if not session:
        raise NotFound("Wizard link not found")
    if _as_utc(session.expires_at) <= _now():
        raise Expired("This wizard link has expired")
    if session.status == SessionStatus.COMPLETED:
        raise Conflict("This wizard has already been submitted")
    return session, session.template


async def submit(access_token: str, responses: Dict[str, Any]) -> Tuple[WizardSession, WizardTemplate]:
    """
    Record the answers and mark the session completed, exactly once.
    Pushing to GHL is left to the caller (push_responses) so the client is not kept waiting.
    """
    session, template = await fetch_by_token(access_token)

    known = {f["id"]: f for f in template.form_fields or []}
    answers = {k: v for k, v in (responses or {}).items() if k in known}
    missing = [f["label"] for f in known.values() if f.get("required") and not str(answers.get(f["id"]) or "").strip()]
    if missing:
        raise BadRequest(f"Missing required answers: {', '.join(missing)}")

    completed_at = _now()
    updated = await WizardSession.filter(id=session.id, status=SessionStatus.PENDING).update(
        responses=answers,
        status=SessionStatus.COMPLETED,
        completed_at=completed_at,
    )
    if updated != 1:
        raise Conflict("This wizard has already been submitted")

    session.responses = answers
    session.status = SessionStatus.COMPLETED
    session.completed_at = completed_at
    logger.info("wizard session=%s submitted answers=%d", session.id, len(answers))
    return session, template


async def push_responses(client: GHLClient, template: WizardTemplate, responses: Dict[str, Any]) -> Dict[str, int]:
    """
    Write every answered field into the template's location as a custom value.
    Bound fields keep the upstream name of the value they point at, so `{Name}` placeholders
    elsewhere keep resolving. Failures are logged per field; nothing is raised.
    """
    location_id = template.location_id
    stats = {"updated": 0, "created": 0, "failed": 0}
    by_name: Optional[Dict[str, str]] = None
    by_id: Dict[str, str] = {}

    for f in template.form_fields or []:
        answer = responses.get(f["id"])
        if answer is None or str(answer).strip() == "":
            continue
        value = ", ".join(str(a) for a in answer) if isinstance(answer, list) else str(answer)
        try:
            if by_name is None:
                current = await client.list_custom_values(location_id, location_id)
                by_name = {cv["name"]: cv["id"] for cv in current if cv.get("name") and cv.get("id")}
                by_id = {cv["id"]: cv["name"] for cv in current if cv.get("name") and cv.get("id")}

            if f.get("target_mode") == TargetMode.BIND_EXISTING.value:
                cv_id = f["target_id"]
                if cv_id not in by_id:
                    raise NotFound(f"bound custom value {cv_id} no longer exists")
                await client.update_custom_value(location_id, location_id, cv_id, {"name": by_id[cv_id], "value": value})
                stats["updated"] += 1
                continue

            name = f.get("target_name") or f["label"]
            cv_id = by_name.get(name)
            if cv_id:
                await client.update_custom_value(location_id, location_id, cv_id, {"name": name, "value": value})
                stats["updated"] += 1
            else:
                created = await client.create_custom_value(location_id, location_id, {"name": name, "value": value})
                new_id = (created.get("customValue") or {}).get("id") if isinstance(created, dict) else None
                if new_id:
                    by_name[name] = new_id
                    by_id[new_id] = name
                stats["created"] += 1
        except AppError as e:
            stats["failed"] += 1
            logger.error("wizard template=%s field=%s push failed: %s", template.id, f.get("id"), e.message)

    logger.info("wizard template=%s pushed %s", template.id, stats)
    return stats
