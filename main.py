from dotenv import load_dotenv
load_dotenv()

import logging
import os
import sys
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from helpers.errors import AppError
from helpers.tortoise_config import lifespan

# ----- Routers / controllers -----
from controllers.auth_controller import auth_router
from controllers import (
    ai_controller,
    custom_fields_controller,
    custom_values_controller,
    locations_controller,
    oauth_controller,
    schedule_controller,
    wizard_controller,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("app")


def _log_uncaught(exc_type, exc, tb):
    logger.critical("uncaught exception, exiting", exc_info=(exc_type, exc, tb))
    sys.exit(1)


sys.excepthook = _log_uncaught


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(oauth_controller.install_router, tags=["OAuth"])
app.include_router(oauth_controller.router, prefix="/api", tags=["OAuth"])
app.include_router(auth_router, prefix="/api", tags=["Authentication"])
app.include_router(custom_values_controller.router, prefix="/api", tags=["Custom Values"])
app.include_router(custom_fields_controller.router, prefix="/api", tags=["Custom Fields"])
app.include_router(locations_controller.router, prefix="/api", tags=["Locations & Bulk"])
app.include_router(ai_controller.router, prefix="/api", tags=["AI"])
app.include_router(schedule_controller.router, prefix="/api", tags=["Scheduled Prompts"])
app.include_router(wizard_controller.router, prefix="/api", tags=["Wizards"])


# ----- Error responses: always {"error": message} -----

@app.exception_handler(AppError)
async def _app_error(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError):
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(status_code=400, content={"error": "; ".join(parts) or "Invalid request"})


@app.exception_handler(Exception)
async def _unhandled(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
def health():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "3000")))
