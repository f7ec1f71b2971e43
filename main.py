"""
ToolTip Companion Backend - Main Application

FastAPI backend for the ToolTip Companion frontend. Drives a headless browser
(Playwright) to discover interactive elements on a page, click them, capture
before/after screenshots and serve preview artifacts, and answers chat
messages with Claude (Anthropic).
"""

from contextlib import asynccontextmanager
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load environment variables
load_dotenv()

from config import settings
from api.routes import router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 ToolTip Companion backend starting on port {settings.PORT}")
    logger.info(f"   Frontend URL: {settings.FRONTEND_URL}")
    yield

    from core.browser import close_browser_pool
    from core.cache import close_redis_client

    await close_browser_pool()
    close_redis_client()
    logger.info("🛑 ToolTip Companion backend stopped")


# Initialize FastAPI app
app = FastAPI(title="ToolTip Companion Backend", lifespan=lifespan)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(status_code=404, content={"error": "Route not found"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(part) for part in error["loc"][1:]), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}")
    message = str(exc) if settings.is_development else "Something went wrong"
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": message},
    )


# Include all routes from api/routes.py
app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, timeout_keep_alive=60)
