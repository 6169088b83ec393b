from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from helpers.token_helper import generate_user_token
from helpers.token_store import Credential
from main import app
from models.auth import User
from models.crm import IntegrationOAuthState, Location
from models.wizard import WizardSession
from tests.conftest import fake_jwt


@pytest.fixture
async def api(client, store):
    app.state.ghl_client = client
    app.state.token_store = store
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def user(db):
    return await User.create(name="Dana", email="dana@example.com", password="x")


@pytest.fixture
def auth(user):
    return {"Authorization": f"Bearer {generate_user_token({'id': user.id})}"}


# ---------------------------------------------------------------- proxy


async def test_health(api):
    r = await api.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
    assert r.json()["timestamp"]


async def test_no_credential_is_401(api, upstream):
    r = await api.get("/api/custom-values/loc1")
    assert r.status_code == 401
    assert r.json() == {"error": "No token found for tenant loc1"}
    assert upstream.requests == []


async def test_values_are_relayed_verbatim(api, seeded, upstream):
    body = {"customValues": [{"id": "cv1", "name": "company", "value": "Acme"}], "traceId": "t"}
    upstream.on("GET", "/locations/loc1/customValues", httpx.Response(200, json=body))

    r = await api.get("/api/custom-values/loc1")

    assert r.status_code == 200
    assert r.json() == body


async def test_upstream_status_and_message_are_relayed(api, seeded, upstream):
    upstream.on("POST", "/locations/loc1/customFields", httpx.Response(422, json={"message": "dataType is invalid"}))

    r = await api.post("/api/custom-fields/loc1", json={"name": "x", "dataType": "NOPE"})

    assert r.status_code == 422
    assert r.json() == {"error": "dataType is invalid"}


async def test_company_id_selects_the_credential(api, store, upstream):
    await store.set("comp1", Credential(tenant_id="comp1", access_token="agency"))
    upstream.on("PUT", "/locations/loc9/customValues/cv1", httpx.Response(200, json={"customValue": {"id": "cv1"}}))
    upstream.on("DELETE", "/locations/loc9/customValues/cv1", httpx.Response(200, json={"succeded": True}))

    r = await api.put("/api/custom-values/loc9/cv1?companyId=comp1", json={"name": "a", "value": "b"})
    assert r.status_code == 200
    r = await api.delete("/api/custom-values/loc9/cv1?companyId=comp1")
    assert r.json() == {"success": True}
    assert {q.headers["Authorization"] for q in upstream.requests} == {"Bearer agency"}


async def test_locations_requires_company(api):
    r = await api.get("/api/locations")
    assert r.status_code == 400
    assert "companyId" in r.json()["error"]


async def test_bulk_validation_errors_are_400(api):
    r = await api.post("/api/bulk/copy-custom-values", json={"targetLocationIds": ["B"]})
    assert r.status_code == 400
    assert "sourceLocationId" in r.json()["error"]

    r = await api.post("/api/bulk/copy-custom-fields", json={"sourceLocationId": "A", "targetLocationIds": []})
    assert r.status_code == 400


async def test_bulk_copy_route(api, store, upstream):
    for t in ("A", "B"):
        await store.set(t, Credential(tenant_id=t, access_token=t))
    upstream.on("GET", "/locations/A/customValues", httpx.Response(200, json={"customValues": [{"name": "n", "value": "v"}]}))
    upstream.on("POST", "/locations/B/customValues", httpx.Response(200, json={"customValue": {"id": "x"}}))

    r = await api.post("/api/bulk/copy-custom-values", json={"sourceLocationId": "A", "targetLocationIds": ["B"]})

    assert r.status_code == 200
    assert r.json()["results"][0]["results"][0]["success"] is True


async def test_manual_token_then_forget(api, store):
    r = await api.post("/api/tokens", json={"tenantId": "loc5", "accessToken": "pit-123"})
    assert r.json() == {"success": True, "tenantId": "loc5"}
    assert (await store.get("loc5")).access_token == "pit-123"

    assert (await api.delete("/api/tokens/loc5")).status_code == 200
    assert (await api.delete("/api/tokens/loc5")).status_code == 404


# ---------------------------------------------------------------- oauth


async def test_install_redirects_to_marketplace(api):
    r = await api.get("/install")
    assert r.status_code in (302, 307)
    assert r.headers["location"].startswith("https://marketplace.gohighlevel.com/oauth/chooselocation?")


async def test_authorize_handler_stores_and_redirects(api, store, upstream):
    upstream.on("POST", "/oauth/token", httpx.Response(200, json={
        "access_token": fake_jwt({"authClass": "Location", "locationId": "loc7", "companyId": "comp1"}),
        "refresh_token": "r",
        "expires_in": 86399,
        "userType": "Location",
    }))

    r = await api.get("/authorize-handler?code=abc")

    target = urlparse(r.headers["location"])
    assert target.netloc == "app.example.com"
    assert parse_qs(target.query)["auth"] == ["success"]
    assert parse_qs(target.query)["tenantId"] == ["loc7"]
    assert (await store.get("loc7")).refresh_token == "r"


async def test_authorize_handler_failure_redirects_with_error(api, store, upstream):
    upstream.on("POST", "/oauth/token", httpx.Response(400, json={"error": "invalid_grant"}))

    r = await api.get("/authorize-handler?code=abc")

    assert parse_qs(urlparse(r.headers["location"]).query)["auth"] == ["error"]
    assert await store.list() == []


async def test_connect_binds_install_to_user(api, auth, user, upstream):
    r = await api.post("/api/oauth/connect", headers=auth, json={})
    state = parse_qs(urlparse(r.json()["auth_url"]).query)["state"][0]
    upstream.on("POST", "/oauth/token", httpx.Response(200, json={
        "access_token": fake_jwt({"locationId": "loc3"}),
        "refresh_token": "r",
    }))

    await api.get(f"/authorize-handler?code=c&state={state}")

    row = await Location.get(location_id="loc3")
    assert row.user_id == user.id


async def test_authorize_handler_without_code_is_400(api, store, upstream):
    r = await api.get("/authorize-handler")

    assert r.status_code == 400
    assert r.json() == {"error": "No authorization code provided"}
    assert upstream.calls("POST", "/oauth/token") == []


async def test_authorize_handler_non_json_token_redirects_with_error(api, store, upstream):
    upstream.on("POST", "/oauth/token", httpx.Response(
        200, text="<html>maintenance</html>", headers={"content-type": "text/html"},
    ))

    r = await api.get("/authorize-handler?code=abc")

    assert r.status_code in (302, 307)
    assert parse_qs(urlparse(r.headers["location"]).query)["auth"] == ["error"]
    assert await store.list() == []


async def test_stale_connect_state_is_rejected_and_removed(api, auth, user, upstream):
    r = await api.post("/api/oauth/connect", headers=auth, json={})
    state = parse_qs(urlparse(r.json()["auth_url"]).query)["state"][0]
    await IntegrationOAuthState.filter(state=state).update(
        created_at=datetime.now(timezone.utc) - timedelta(hours=1),
    )

    r = await api.get(f"/authorize-handler?code=c&state={state}")

    assert parse_qs(urlparse(r.headers["location"]).query)["auth"] == ["error"]
    assert not await IntegrationOAuthState.filter(state=state).exists()
    assert upstream.calls("POST", "/oauth/token") == []


async def test_abandoned_connect_states_are_pruned(api, auth, user):
    await api.post("/api/oauth/connect", headers=auth, json={})
    await IntegrationOAuthState.all().update(created_at=datetime.now(timezone.utc) - timedelta(hours=1))

    await api.post("/api/oauth/connect", headers=auth, json={})

    assert await IntegrationOAuthState.all().count() == 1


# ---------------------------------------------------------------- users


async def test_signup_signin_profile(api, db):
    r = await api.post("/api/auth/signup", json={"name": "Sam", "email": "sam@example.com", "password": "longenough"})
    assert r.status_code == 200

    r = await api.post("/api/auth/signin", json={"email": "sam@example.com", "password": "wrong-pass"})
    assert r.status_code == 400

    r = await api.post("/api/auth/signin", json={"email": "sam@example.com", "password": "longenough"})
    headers = {"Authorization": f"Bearer {r.json()['token']}"}

    r = await api.post("/api/profile", headers=headers, json={"ai_provider": "anthropic", "ai_api_key": "sk-ant-12345"})
    assert r.status_code == 200

    profile = (await api.get("/api/profile", headers=headers)).json()
    assert profile["ai_provider"] == "anthropic"
    assert profile["ai_api_key"] == "...2345"
    assert profile["locations"] == []


async def test_profile_rejects_unknown_provider(api, auth):
    r = await api.post("/api/profile", headers=auth, json={"ai_provider": "gemini"})
    assert r.status_code == 400
    assert "ai_provider" in r.json()["error"]


async def test_invalid_session_token(api):
    r = await api.get("/api/profile", headers={"Authorization": "Bearer junk"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid token"}


async def test_signed_in_user_uses_own_credentials(api, auth, user, store, upstream):
    await store.set("loc1", Credential(tenant_id="loc1", access_token="anonymous"))

    r = await api.get("/api/custom-values/loc1", headers=auth)

    assert r.status_code == 401
    assert upstream.requests == []


# ---------------------------------------------------------------- schedules


async def test_schedule_lifecycle(api, auth):
    r = await api.post("/api/schedule/create", headers=auth, json={
        "locationId": "loc1",
        "customValueId": "cv1",
        "customValueName": "Tagline",
        "promptTemplate": "Write for {company}",
        "scheduleType": "weekly",
        "scheduleTime": "10:30",
        "scheduleDay": 2,
    })
    assert r.status_code == 200
    sid = r.json()["schedule"]["id"]
    assert r.json()["schedule"]["nextRunAt"]

    listed = (await api.get("/api/schedule/list/loc1", headers=auth)).json()["schedules"]
    assert [s["id"] for s in listed] == [sid]

    r = await api.put(f"/api/schedule/{sid}/toggle", headers=auth)
    assert r.json()["schedule"]["isActive"] is False

    assert (await api.delete(f"/api/schedule/{sid}", headers=auth)).json() == {"success": True}
    assert (await api.delete(f"/api/schedule/{sid}", headers=auth)).status_code == 404


async def test_schedule_rejects_bad_time(api, auth):
    r = await api.post("/api/schedule/create", headers=auth, json={
        "locationId": "loc1",
        "customValueId": "cv1",
        "customValueName": "Tagline",
        "promptTemplate": "x",
        "scheduleTime": "25:00",
    })
    assert r.status_code == 400


# ---------------------------------------------------------------- wizards


async def test_wizard_round_trip(api, auth, user, upstream):
    await Location.create(user=user, location_id="loc1", access_token="t")
    r = await api.post("/api/locations/loc1/wizards", headers=auth, json={
        "name": "Onboarding",
        "fields": [{"id": "biz", "label": "Business name", "required": True}],
    })
    template_id = r.json()["template"]["id"]

    r = await api.post(f"/api/wizards/{template_id}/sessions", headers=auth, json={"clientName": "Jo"})
    link = r.json()["session"]["link"]
    assert link.startswith("https://app.example.com/wizard/")
    token = link.rsplit("/", 1)[1]

    r = await api.get(f"/api/client/wizard/{token}")
    assert r.json()["wizard"]["fields"] == [{"id": "biz", "label": "Business name", "type": "text", "required": True}]

    upstream.on("GET", "/locations/loc1/customValues", httpx.Response(200, json={"customValues": []}))
    upstream.on("POST", "/locations/loc1/customValues", httpx.Response(200, json={"customValue": {"id": "n"}}))

    r = await api.post(f"/api/client/wizard/{token}/submit", json={"responses": {"biz": "Acme"}})
    assert r.status_code == 200
    assert len(upstream.calls("POST", "/locations/loc1/customValues")) == 1

    r = await api.post(f"/api/client/wizard/{token}/submit", json={"responses": {"biz": "Again"}})
    assert r.status_code == 409
    assert len(upstream.calls("POST", "/locations/loc1/customValues")) == 1

    r = await api.get(f"/api/client/wizard/{token}")
    assert r.status_code == 409

    sessions = (await api.get(f"/api/wizards/{template_id}/sessions", headers=auth)).json()["sessions"]
    assert sessions[0]["status"] == "completed"


async def test_wizard_templates_are_owner_only(api, auth, db):
    other = await User.create(name="Other", email="other@example.com", password="x")
    headers = {"Authorization": f"Bearer {generate_user_token({'id': other.id})}"}
    r = await api.post("/api/locations/loc1/wizards", headers=auth, json={"name": "Mine"})
    template_id = r.json()["template"]["id"]

    assert (await api.get(f"/api/wizards/{template_id}", headers=headers)).status_code == 404
    assert (await api.get(f"/api/wizards/{template_id}", headers=auth)).status_code == 200


async def test_client_link_unknown(api, db):
    r = await api.get("/api/client/wizard/missing")
    assert r.status_code == 404
    assert await WizardSession.all().count() == 0


# ---------------------------------------------------------------- sso


async def test_sso_without_key_is_400(api):
    r = await api.post("/api/sso/decrypt", json={"payload": "abc"})
    assert r.status_code == 400
