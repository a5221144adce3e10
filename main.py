#main.py

import logging
from pathlib import Path
from contextlib import asynccontextmanager
import psycopg
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse
from db import init_db, close_db, get_settings
from endpoints.databases import router as databases_router
from endpoints.tables import router as tables_router
from endpoints.sql import router as sql_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db(settings)
    yield
    await close_db()

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# CORS origins from environment variable, comma-separated
CORS_ORIGINS = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ─────────────────────────────────────────────────────────────────────────────
# Error Bodies
# Every failure is answered with {"error": message}
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": f"Invalid request: {problems}"}
    )


@app.exception_handler(psycopg.Error)
async def database_exception_handler(request: Request, exc: psycopg.Error):
    # Failures outside the handlers, e.g. connecting to an unknown database
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc)}
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc) or "Internal Server Error"}
    )

# Include all routers
app.include_router(databases_router)
app.include_router(tables_router)
app.include_router(sql_router)


@app.get("/health", tags=["system"])
def health():
    return {
        "status": "healthy",
        "defaultDatabase": settings.default_database
    }


# The console is served last so API routes take precedence
app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="console")


if __name__ == "__main__":
    logger.info("DB Admin running on http://localhost:%d", settings.APP_PORT)
    uvicorn.run(app, host="0.0.0.0", port=settings.APP_PORT)
