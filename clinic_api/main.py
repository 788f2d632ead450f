import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from clinic_api.api.v1.router import api_router
from clinic_api.core.errors import ClinicError
from clinic_api.services.plans import seed_plans_on_startup

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s — %(levelname)s — %(name)s — %(message)s',
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup: make sure the plan catalog exists
    await seed_plans_on_startup()
    yield


app = FastAPI(
    title="ClinicDesk API",
    description="Multi-tenant clinic scheduling and subscription billing",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok", "service": "clinicdesk-api", "version": "0.1.0"}
