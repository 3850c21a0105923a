"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from archexam.core.config import settings
from archexam.core.database import init_db
from archexam.core.errors import error_body, register_exception_handlers
from archexam.api.author import router as author_router
from archexam.api.qualification import router as qualification_router
from archexam.api.quiz import router as quiz_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    """
    logger.info("Starting %s...", settings.APP_NAME)
    init_db()
    logger.info("Database initialized")
    yield
    logger.info("Shutting down %s", settings.APP_NAME)

app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=settings.CORS_ORIGINS, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])
app.include_router(qualification_router, prefix=f"{settings.API_V1_PREFIX}/qualification", tags=["qualification"])
app.include_router(quiz_router, prefix=f"{settings.API_V1_PREFIX}/quiz", tags=["quiz"])
app.include_router(author_router, prefix=f"{settings.API_V1_PREFIX}/author", tags=["authoring"])

register_exception_handlers(app)

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail, "http_error", exc.status_code),
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors."""
    body = error_body("Validation error", "validation_error", 422)
    body["error"]["details"] = jsonable_encoder(exc.errors())
    return JSONResponse(status_code=422, content=body)

@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok", "version": settings.APP_VERSION}
