"""FastAPI app: tournament, wager and ledger API."""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from scrim.errors import ScrimError
from scrim.jobs import run_settlement_loop
from scrim.models.base import init_db
from web.api.admin_routes import router as admin_router
from web.api.deps import close_bracket_provider, get_bracket_provider
from web.api.routes import router as api_router

logger = logging.getLogger("scrim.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    settlement = None
    if config.SETTLEMENT_INTERVAL > 0:
        settlement = asyncio.create_task(
            run_settlement_loop(config.SETTLEMENT_INTERVAL, provider=get_bracket_provider())
        )
    yield
    if settlement:
        settlement.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await settlement
    await close_bracket_provider()


app = FastAPI(title="Scrim Core API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router)
app.include_router(admin_router)


@app.exception_handler(ScrimError)
async def scrim_error_handler(request: Request, exc: ScrimError):
    if exc.status_code >= 500:
        logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "type": type(exc).__name__})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "type": "ValueError"})


@app.get("/api/health")
async def health():
    return {"status": "ok"}
