import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from helpers.errors import BadRequest, Conflict, Expired, NotFound
from helpers.token_store import Credential, DatabaseTokenStore
from helpers.wizard_service import create_session, fetch_by_token, normalize_fields, push_responses, submit
from models.auth import User
from models.wizard import SessionStatus, WizardSession, WizardTemplate

FIELDS = [
    {"id": "biz", "label": "Business name", "required": True},
    {"id": "tag", "label": "Tagline", "target_name": "Brand Tagline"},
    {"id": "phone", "label": "Your phone", "target_mode": "bind_existing", "target_id": "cv-phone"},
]


@pytest.fixture
async def template(db):
    user = await User.create(name="Owner", email="w@example.com", password="x")
    await DatabaseTokenStore(user.id).set("loc1", Credential(tenant_id="loc1", access_token="t"))
    return await WizardTemplate.create(user=user, location_id="loc1", name="Onboarding", form_fields=normalize_fields(FIELDS))


def test_normalize_fills_defaults_and_ids():
    out = normalize_fields([{"label": " Hours "}])
    assert out[0]["label"] == "Hours"
    assert out[0]["target_mode"] == "create_new"
    assert out[0]["target_name"] == "Hours"
    assert out[0]["required"] is False
    assert out[0]["id"]


@pytest.mark.parametrize("field", [
    {"label": ""},
    {"label": "x", "target_mode": "sideways"},
    {"label": "x", "target_mode": "bind_existing"},
])
def test_normalize_rejects_bad_fields(field):
    with pytest.raises(BadRequest):
        normalize_fields([field])


async def test_unknown_token(template):
    with pytest.raises(NotFound):
        await fetch_by_token("nope")


async def test_expired_session_cannot_be_fetched_or_submitted(template):
    session = await create_session(template, ttl_days=1)
    session.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    await session.save()

    with pytest.raises(Expired):
        await fetch_by_token(session.access_token)
    with pytest.raises(Expired):
        await submit(session.access_token, {"biz": "Acme"})


async def test_required_answers_are_enforced(template):
    session = await create_session(template)

    with pytest.raises(BadRequest):
        await submit(session.access_token, {"tag": "Best in town"})
    assert (await WizardSession.get(id=session.id)).status == SessionStatus.PENDING


async def test_second_submission_is_rejected(template):
    session = await create_session(template, client_name="Jo")

    done, _ = await submit(session.access_token, {"biz": "Acme", "ignored": "x"})
    assert done.status == SessionStatus.COMPLETED
    assert done.responses == {"biz": "Acme"}

    with pytest.raises(Conflict):
        await submit(session.access_token, {"biz": "Other"})
    assert (await WizardSession.get(id=session.id)).responses == {"biz": "Acme"}


async def test_push_binds_updates_and_creates(template, client, upstream):
    upstream.on("PUT", "/locations/loc1/customValues/cv-phone", httpx.Response(200, json={}))
    upstream.on("GET", "/locations/loc1/customValues", httpx.Response(200, json={"customValues": [
        {"id": "cv-biz", "name": "Business name", "value": ""},
        {"id": "cv-phone", "name": "Business Phone", "value": "old"},
    ]}))
    upstream.on("PUT", "/locations/loc1/customValues/cv-biz", httpx.Response(200, json={}))
    upstream.on("POST", "/locations/loc1/customValues", httpx.Response(200, json={"customValue": {"id": "cv-new"}}))

    scoped = client.with_store(DatabaseTokenStore(template.user_id))
    stats = await push_responses(scoped, template, {"biz": "Acme", "tag": "Best", "phone": "555"})

    assert stats == {"updated": 2, "created": 1, "failed": 0}
    assert len(upstream.calls("GET", "/locations/loc1/customValues")) == 1
    created = json.loads(upstream.calls("POST", "/locations/loc1/customValues")[0].content)
    assert created == {"name": "Brand Tagline", "value": "Best"}
    bound = json.loads(upstream.calls("PUT", "/locations/loc1/customValues/cv-phone")[0].content)
    # a bound value keeps its upstream name so placeholders using it still resolve
    assert bound == {"name": "Business Phone", "value": "555"}


async def test_push_failures_are_counted_not_raised(template, client, upstream):
    upstream.on("GET", "/locations/loc1/customValues", httpx.Response(200, json={"customValues": [
        {"id": "cv-phone", "name": "Business Phone", "value": ""},
    ]}))
    upstream.on("PUT", "/locations/loc1/customValues/cv-phone", httpx.Response(404, json={"message": "gone"}))

    scoped = client.with_store(DatabaseTokenStore(template.user_id))
    stats = await push_responses(scoped, template, {"phone": "555"})

    assert stats == {"updated": 0, "created": 0, "failed": 1}


async def test_push_skips_bound_value_that_was_deleted(template, client, upstream):
    upstream.on("GET", "/locations/loc1/customValues", httpx.Response(200, json={"customValues": []}))

    scoped = client.with_store(DatabaseTokenStore(template.user_id))
    stats = await push_responses(scoped, template, {"phone": "555"})

    assert stats == {"updated": 0, "created": 0, "failed": 1}
    assert upstream.calls("PUT", "/locations/loc1/customValues/cv-phone") == []


async def test_completed_session_cannot_be_fetched(template):
    session = await create_session(template)
    await submit(session.access_token, {"biz": "Acme"})

    with pytest.raises(Conflict):
        await fetch_by_token(session.access_token)
