import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from weekboard.database import init_db, close_db
from weekboard.core.config import settings
from weekboard.core.exceptions import (
    ConflictError, InvalidDateError, NotFoundError, ValidationError, WeekboardError,
)
from weekboard.api.v1.api import api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()
    logger.info(f"{settings.APP_NAME} {settings.VERSION} started ({settings.APP_ENV})")
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    NotFoundError: 404,
    ValidationError: 400,
    InvalidDateError: 400,
    ConflictError: 409,
}


@app.exception_handler(WeekboardError)
async def weekboard_error_handler(request: Request, exc: WeekboardError):
    status_code = next((code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 500)
    if status_code >= 500:
        logger.error(f"Unhandled engine error on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# Include API router
app.include_router(api_router, prefix="/api/v1")

# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
