# helpers/ghl_config.py
import os
from typing import Any, Dict

from dotenv import load_dotenv

load_dotenv()

DEFAULT_SCOPES = (
    "locations.readonly "
    "locations/customValues.readonly locations/customValues.write "
    "locations/customFields.readonly locations/customFields.write"
)


def _as_bool(v: str) -> bool:
    return (v or "").strip().lower() in ("1", "true", "yes", "on")


def ghl_config() -> Dict[str, Any]:
    """
    Everything the app reads from the environment, in one place.
    Read lazily so tests can monkeypatch env vars.
    """
    port = int(os.getenv("PORT", "3000"))
    api_domain = os.getenv("GHL_API_DOMAIN", "https://services.leadconnectorhq.com").rstrip("/")
    return {
        "port": port,
        "client_id": os.getenv("GHL_APP_CLIENT_ID", ""),
        "client_secret": os.getenv("GHL_APP_CLIENT_SECRET", ""),
        "api_domain": api_domain,
        "token_url": f"{api_domain}/oauth/token",
        "install_base": os.getenv("GHL_INSTALL_BASE", "https://marketplace.gohighlevel.com").rstrip("/"),
        "auth_path": "/oauth/chooselocation",
        "scope": os.getenv("GHL_SCOPES", DEFAULT_SCOPES),
        "redirect_uri": os.getenv("REDIRECT_URI", f"http://localhost:{port}/authorize-handler"),
        "api_version": os.getenv("GHL_API_VERSION", "2021-07-28"),
        "sso_key": os.getenv("GHL_SSO_KEY", ""),
        "timeout": float(os.getenv("GHL_HTTP_TIMEOUT_SECONDS", "30")),
        "app_base_url": os.getenv("APP_BASE_URL", "").rstrip("/"),
        "token_store": os.getenv("TOKEN_STORE", "database").lower(),
        "oauth_state_ttl_minutes": int(os.getenv("OAUTH_STATE_TTL_MINUTES", "15")),
    }


def scheduler_config() -> Dict[str, Any]:
    return {
        "enabled": _as_bool(os.getenv("PROMPT_SCHED_ENABLED", "true")),
        "every_seconds": int(os.getenv("PROMPT_SCHED_EVERY_SECONDS", "300")),
        "lease_seconds": int(os.getenv("PROMPT_SCHED_LEASE_SECONDS", "600")),
        "timezone": os.getenv("APS_TIMEZONE", "UTC"),
    }


def wizard_default_ttl_days() -> int:
    return int(os.getenv("WIZARD_DEFAULT_TTL_DAYS", "7"))
