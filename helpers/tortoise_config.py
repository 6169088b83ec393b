import asyncio
import logging
import os
from contextlib import asynccontextmanager

import httpx
from dotenv import load_dotenv
from tortoise import Tortoise

from helpers.ghl_client import GHLClient
from helpers.ghl_config import ghl_config
from helpers.ghl_oauth import GHLOAuth
from helpers.token_store import build_default_store
from scheduler.prompt_scheduler import shutdown_scheduler, start_prompt_scheduler

load_dotenv()

logger = logging.getLogger("app")

MODEL_MODULES = [
    "models.auth",
    "models.crm",
    "models.schedule",
    "models.wizard",
]

TORTOISE_CONFIG = {
    'connections': {
        'default': os.getenv("DATABASE_URL", "sqlite://db.sqlite3")
    },
    "apps": {
        "models": {
            "models": MODEL_MODULES + ["aerich.models"],
            "default_connection": "default",
        }
    },
    "use_tz": True,
    "timezone": "UTC",
}


def _log_loop_exception(loop, context):
    logger.error("unhandled async error: %s", context.get("message"), exc_info=context.get("exception"))


@asynccontextmanager
async def lifespan(app):
    cfg = ghl_config()
    asyncio.get_running_loop().set_exception_handler(_log_loop_exception)
    await Tortoise.init(config=TORTOISE_CONFIG)

    http = httpx.AsyncClient(timeout=cfg["timeout"])
    store = build_default_store(cfg["token_store"])
    client = GHLClient(store, oauth=GHLOAuth(http), http=http)
    app.state.http = http
    app.state.token_store = store
    app.state.ghl_client = client
    start_prompt_scheduler(client)
    logger.info("started token_store=%s api=%s", cfg["token_store"], cfg["api_domain"])
    try:
        yield
    finally:
        shutdown_scheduler(wait=False)
        await http.aclose()
        await Tortoise.close_connections()
