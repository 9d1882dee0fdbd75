import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Body, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import Settings, get_settings
from core.exceptions import InvalidInputError, ScraperException
from core.logging import configure_logging
from models.record import format_timestamp
from models.request import ScrapePayload
from services.scraper import assembler
from services.scraper.scraper import WebScraper

AVAILABLE_ENDPOINTS = [
    "GET /health",
    "POST /scrape",
    "GET /scrape",
]

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}


def create_app(
    settings: Optional[Settings] = None,
    scraper: Optional[WebScraper] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    ``scraper`` lets tests inject a ``WebScraper`` wired to a fake browser
    engine; by default one is built from ``settings`` at startup. The
    browser itself is launched lazily by the first scrape.
    """
    settings = settings or get_settings()

    # ------------------------------------------------------------------
    # FastAPI App Lifecycle
    # ------------------------------------------------------------------
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            logger.info("Initializing application...")
            app.state.scraper = scraper or WebScraper(settings=settings)

            yield

            logger.info("Shutting down application...")
            await app.state.scraper.cleanup()

        except Exception as e:
            logger.exception(f"Application lifecycle error: {str(e)}")
            raise

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Headless-browser scraper for zone statistics pages",
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS,
    )

    @app.middleware("http")
    async def add_response_headers(request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    # ------------------------------------------------------------------
    # Error handlers
    # ------------------------------------------------------------------
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return assembler.to_response(
            assembler.failure(InvalidInputError("Invalid request body"))
        )

    @app.exception_handler(ScraperException)
    async def scraper_exception_handler(request: Request, exc: ScraperException):
        return assembler.to_response(assembler.failure(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return JSONResponse(
                status_code=exc.status_code,
                content={
                    "success": False,
                    "error": "Endpoint not found",
                    "availableEndpoints": AVAILABLE_ENDPOINTS,
                },
            )
        content = {"success": False, "error": str(exc.detail)}
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            content["availableEndpoints"] = AVAILABLE_ENDPOINTS
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {str(exc)}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Something went wrong!"},
        )

    app.mount("/metrics", make_asgi_app())

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------
    @app.get("/health")
    async def health_check():
        return {"status": "OK", "timestamp": format_timestamp(datetime.now(timezone.utc))}

    @app.get("/")
    async def root():
        return {
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "description": "Headless-browser scraper for zone statistics pages",
            "endpoints": AVAILABLE_ENDPOINTS,
            "docs_url": "/docs",
            "health_check": "/health",
        }

    @app.post("/scrape")
    async def scrape_url(req: Request, payload: Optional[ScrapePayload] = Body(default=None)):
        url = payload.url if payload is not None else None
        result = await req.app.state.scraper.scrape(url)
        return assembler.to_response(result)

    @app.get("/scrape")
    async def scrape_hint(url: Optional[str] = None):
        if not url:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "success": False,
                    "error": "URL parameter is required",
                    "example": "/scrape?url=https://example.com",
                },
            )
        return {
            "message": "Please use POST /scrape with URL in request body",
            "example": {
                "method": "POST",
                "url": "/scrape",
                "body": {"url": url},
            },
        }

    return app


configure_logging(get_settings().LOG_LEVEL)
logger.info(f"Loaded user agent: {get_settings().DEFAULT_USER_AGENT}")

app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=settings.WORKERS,
        log_level=settings.LOG_LEVEL.lower(),
    )
