from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse, JSONResponse

from . import errors
from .config import Settings, load_settings
from .errors import register_error_handlers
from .middleware.custom_logger import Audit, StructuredAuditMiddleware, build_audit
from .schemas import ClickItem, CreateShortURLReq, CreateShortURLResp, StatsResp
from .service import Clock, UrlService
from .store import UrlStore
from .utils import iso_z, utc_now

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

router = APIRouter()

def get_service(request: Request) -> UrlService:
    return request.app.state.service

def get_audit(request: Request) -> Audit:
    return request.app.state.audit

@router.post("/shorturls", response_model=CreateShortURLResp, status_code=201)
def create_short_url(
    payload: CreateShortURLReq,
    service: UrlService = Depends(get_service),
    audit: Audit = Depends(get_audit),
):
    audit.log("info", "handler", "processing create short url request")
    if not payload.url:
        audit.log("error", "handler", "url field is required")
        raise errors.ValidationError("URL is required")
    if payload.validity is not None and payload.validity <= 0:
        audit.log("error", "handler", "invalid validity value")
        raise errors.ValidationError("Validity must be a positive number")
    try:
        result = service.create_short_url(payload.url, payload.validity, payload.shortcode)
    except errors.AppError as e:
        audit.log("error", "handler", f"error creating short url: {e.message}")
        raise
    audit.log("info", "handler", "short url created successfully")
    return result

@router.get("/shorturls/{shortcode}", response_model=StatsResp)
def get_stats(
    shortcode: str,
    service: UrlService = Depends(get_service),
    audit: Audit = Depends(get_audit),
):
    audit.log("info", "handler", "processing get url stats request")
    try:
        stats = service.get_url_stats(shortcode)
    except errors.NotFound:
        audit.log("warn", "handler", "shortcode not found for stats")
        raise
    audit.log("info", "handler", "url stats retrieved successfully")
    return StatsResp(
        originalUrl=stats.original_url,
        shortcode=stats.shortcode,
        createdAt=iso_z(stats.created_at),
        expiresAt=iso_z(stats.expires_at),
        clickCount=stats.click_count,
        clicks=[
            ClickItem(timestamp=iso_z(c.timestamp), referrer=c.referrer, location=c.location, userAgent=c.user_agent)
            for c in stats.clicks
        ],
    )

@router.get("/{shortcode}")
def redirect_shortcode(
    shortcode: str,
    request: Request,
    service: UrlService = Depends(get_service),
    audit: Audit = Depends(get_audit),
):
    audit.log("info", "handler", "processing redirect request")
    try:
        record = service.resolve_shortcode(shortcode)
    except errors.NotFound:
        # unknown and expired look the same to callers
        audit.log("warn", "handler", "shortcode not found or expired")
        raise errors.NotFound("Short URL not found or expired")

    ref = request.headers.get("referer") or request.headers.get("referrer")
    ua = request.headers.get("user-agent")
    service.record_click(shortcode, ref, ua)
    audit.log("info", "handler", "redirecting to original url")
    return RedirectResponse(url=record.original_url, status_code=302)

@router.api_route("/{path:path}", methods=ALL_METHODS, include_in_schema=False)
def route_not_found(path: str, request: Request, audit: Audit = Depends(get_audit)):
    audit.log("warn", "handler", f"route not found: {request.method} {request.url.path}")
    return JSONResponse(status_code=404, content={"error": "Route not found"})

def create_app(
    settings: Optional[Settings] = None,
    store: Optional[UrlStore] = None,
    clock: Optional[Clock] = None,
    audit: Optional[Audit] = None,
) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = load_settings()
    if audit is None:
        audit = build_audit(settings)

    service = UrlService(
        store if store is not None else UrlStore(),
        audit,
        base_url=settings.base_url,
        clock=clock or utc_now,
        default_validity_minutes=settings.default_validity_minutes,
        shortcode_length=settings.shortcode_length,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        audit.log("info", "config", f"server started on port {settings.port}")
        yield
        audit.close()

    app = FastAPI(title="URL Shortener", lifespan=lifespan)
    app.state.audit = audit
    app.state.service = service

    app.add_middleware(StructuredAuditMiddleware, audit=audit)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(router)
    return app

def main() -> None:
    settings = load_settings()
    uvicorn.run(
        "url_shortener.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )

if __name__ == "__main__":
    main()
