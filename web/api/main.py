"""FastAPI team service API."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from teamhub.models.base import init_db
from teamhub.services.errors import DomainError, field_errors

from web.api.import_routes import router as import_router
from web.api.routes import router as api_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("teamhub.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("Team service started (database: %s)", config.DATABASE_URL.split("://", 1)[0])
    yield


app = FastAPI(title="Team Service API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)
app.include_router(import_router)
app.include_router(api_router)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid data", "errors": field_errors(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


@app.get("/")
async def root():
    """Service information."""
    return {
        "success": True,
        "message": "Team Service API",
        "version": app.version,
        "endpoints": {"health": "/api/health", "teams": "/api/teams"},
    }


@app.get("/api/health")
async def health():
    return {"status": "ok"}
