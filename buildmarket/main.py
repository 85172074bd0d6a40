"""
Main FastAPI application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from buildmarket.config import get_settings
from buildmarket.database import create_tables, engine
from buildmarket.api import auth, projects, milestones
from buildmarket.utils.errors import BuildMarketError, GenerationError, StorageError
from buildmarket.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    logger.info("Database tables created")

    yield

    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error mapping
@app.exception_handler(BuildMarketError)
async def buildmarket_error_handler(request: Request, exc: BuildMarketError):
    if isinstance(exc, (GenerationError, StorageError)):
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.reason}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"kind": exc.kind, "detail": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body") or "body"
    return JSONResponse(
        status_code=400,
        content={
            "kind": "validation_error",
            "detail": f"{field}: {first.get('msg', 'invalid value')}",
        },
    )


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(projects.router, prefix="/api/projects", tags=["Projects"])
app.include_router(milestones.router, prefix="/api", tags=["Milestones"])


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "buildmarket.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
