from __future__ import annotations

import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .api import catalog, stories

# Security headers middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        # SECURITY: Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # SECURITY: Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # SECURITY: Enforce HTTPS in production (max-age=1 year)
        if os.environ.get("ENVIRONMENT") == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


app = FastAPI(
    title="Story-o-matic",
    description="HTTP API for the Story-o-matic interactive fiction engine",
    version="1.0.0"
)

# SECURITY: Configure CORS with environment-based origins
# Format: comma-separated list of allowed origins
allowed_origins_str = os.environ.get(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8001,http://127.0.0.1:8001"
)
allowed_origins = [origin.strip() for origin in allowed_origins_str.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=600,
)

app.add_middleware(SecurityHeadersMiddleware)

app.include_router(catalog.router)
app.include_router(stories.router)


@app.get("/")
async def index():
    return {"message": "Story-o-matic API", "docs": "/docs"}


@app.on_event("startup")
async def validate_configuration():
    """Validate configuration on startup."""
    import logging
    from .settings import get_api_key_for_provider, get_library_dir, load_user_settings

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    settings = load_user_settings()
    provider = settings.text_provider
    if provider != "huggingface" and not get_api_key_for_provider(provider, settings):
        logging.warning(f"CONFIG: {provider} API key not configured")
        logging.info("Run `storyomatic setup` or set the provider's API key environment variable.")

    library_dir = get_library_dir(settings)
    try:
        library_dir.mkdir(parents=True, exist_ok=True)
        test_file = library_dir / ".write_test"
        test_file.write_text("test")
        test_file.unlink()
        logging.info(f"Story library is writable: {library_dir}")
    except OSError as e:
        logging.error(f"Story library not writable: {e}")
        raise RuntimeError(f"Cannot write to story library directory: {e}")

    logging.info(f"Allowed CORS origins: {', '.join(allowed_origins)}")


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "service": "Story-o-matic"}
