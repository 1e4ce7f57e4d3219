"""HTTP middlewares: request logging with error envelope, basic auth, rate limiting, CORS."""

from __future__ import annotations

import logging
import re
import secrets
import time
from typing import Callable, List, Optional, Tuple

from cachetools import TTLCache
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from starlette.exceptions import HTTPException as StarletteHTTPException

from notifier.api.common import fail
from notifier.config import ApiConfig
from notifier.errors import NotifierError

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset({"/", "/health"})
AI_PREFIX = "/ai"
RATE_WINDOW_SECONDS = 60
MAX_TRACKED_KEYS = 10_000

_basic_scheme = HTTPBasic(realm="notifier", auto_error=False)


class FixedWindowRateLimiter:
    """In-memory fixed-window counter per key. Single process only.

    Counters live in a ``TTLCache`` so idle keys expire after one window and
    at most ``max_keys`` are tracked at once.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: int = RATE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        max_keys: int = MAX_TRACKED_KEYS,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: TTLCache[str, Tuple[int, int]] = TTLCache(
            maxsize=max_keys, ttl=window_seconds, timer=clock
        )

    def hit(self, key: str) -> bool:
        """Count one request for ``key``; False once the window budget is spent."""
        if self.limit <= 0:
            return True
        window = int(self.clock() // self.window_seconds)
        start, count = self._windows.get(key, (window, 0))
        if start != window:
            start, count = window, 0
        if count >= self.limit:
            return False
        self._windows[key] = (start, count + 1)
        return True

    def retry_after(self) -> int:
        return int(self.window_seconds - self.clock() % self.window_seconds) + 1


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("cf-connecting-ip") or request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def basic_credentials(request: Request) -> Optional[HTTPBasicCredentials]:
    """Credentials from the Authorization header; None when missing or malformed."""
    try:
        return await _basic_scheme(request)
    except HTTPException:
        return None


def credentials_match(credentials: Optional[HTTPBasicCredentials], user: str, password: str) -> bool:
    if credentials is None:
        return False
    user_ok = secrets.compare_digest(credentials.username.encode("utf-8"), user.encode("utf-8"))
    password_ok = secrets.compare_digest(credentials.password.encode("utf-8"), password.encode("utf-8"))
    return user_ok and password_ok


def cors_options(config: ApiConfig) -> dict:
    """CORSMiddleware kwargs; ``*.example.com`` entries become an origin regex."""
    origins = [o.strip() for o in config.allowed_origins.split(",") if o.strip()]
    exact: List[str] = []
    wildcards: List[str] = []
    for origin in origins:
        if origin == "*":
            exact = ["*"]
            wildcards = []
            break
        if origin.startswith("*."):
            wildcards.append(re.escape(origin[2:]))
        else:
            exact.append(origin)

    options = {
        "allow_origins": exact,
        "allow_methods": [m.strip() for m in config.cors_methods.split(",") if m.strip()],
        "allow_headers": [h.strip() for h in config.cors_headers.split(",") if h.strip()],
        "max_age": config.cors_max_age,
    }
    if wildcards:
        options["allow_origin_regex"] = rf"https?://([a-z0-9-]+\.)+({'|'.join(wildcards)})(:\d+)?"
    return options


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotifierError)
    async def notifier_error(request: Request, exc: NotifierError):
        if exc.status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return fail(str(exc), exc.status)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        message = "Endpoint not found" if exc.status_code == 404 else str(exc.detail)
        return fail(message, exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return fail("Invalid request", 400)


def install_middleware(app: FastAPI, config: ApiConfig) -> None:
    """Register middlewares. The last registered runs first (CORS is outermost)."""
    api_limiter = FixedWindowRateLimiter(config.rate_limit_per_minute)
    ai_limiter = FixedWindowRateLimiter(config.ai_rate_limit_per_minute)

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        path = request.url.path
        limiter = ai_limiter if path.startswith(AI_PREFIX) else api_limiter
        if request.method != "OPTIONS" and not limiter.hit(f"{path}:{client_ip(request)}"):
            logger.warning("Rate limit exceeded for %s on %s", client_ip(request), path)
            return fail(
                "Too many requests, try again shortly",
                429,
                headers={"Retry-After": str(limiter.retry_after())},
            )
        return await call_next(request)

    @app.middleware("http")
    async def basic_auth(request: Request, call_next):
        if (
            config.auth_enabled
            and request.method != "OPTIONS"
            and request.url.path not in PUBLIC_PATHS
            and not credentials_match(
                await basic_credentials(request), config.auth_user, config.auth_password
            )
        ):
            return fail(
                "Unauthorized", 401, headers={"WWW-Authenticate": 'Basic realm="notifier"'}
            )
        return await call_next(request)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        t0 = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            response = fail("Internal server error", 500)
        logger.info(
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.monotonic() - t0) * 1000,
        )
        return response

    options = cors_options(config)
    if config.environment == "development":
        logger.info("CORS config: %s", options)
    app.add_middleware(CORSMiddleware, **options)
