# Admin dashboard API for Senan.
# Patch-note draft review/publish, profile management, monitoring and logs.
# Runs inside the bot's event loop (see bot.py) so routes can reach Discord.

import os
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import FileResponse, JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel

from senan import __version__
from senan.commands.patchnotes import publish_draft, publish_to_web
from senan.drafts import check_version
from senan.errors import BotError, InputError, NotFoundError, PermissionDenied, PersistenceError, UpstreamError

security = HTTPBasic(auto_error=False)


# ─────────────────────────────────────────
# REQUEST / RESPONSE MODELS
# ─────────────────────────────────────────

class ProfileCreate(BaseModel):
    key: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    system_prompt: Optional[str] = None
    max_tokens: Optional[int] = None
    response_length: Optional[str] = None
    personality: Optional[str] = None
    allow_speculation: Optional[bool] = None
    allow_off_topic: Optional[bool] = None
    include_conversation_context: Optional[bool] = None
    citation_style: Optional[str] = None


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = None
    description: Optional[str] = None
    system_prompt: Optional[str] = None
    max_tokens: Optional[int] = None
    response_length: Optional[str] = None
    personality: Optional[str] = None
    allow_speculation: Optional[bool] = None
    allow_off_topic: Optional[bool] = None
    include_conversation_context: Optional[bool] = None
    citation_style: Optional[str] = None


class DraftUpdate(BaseModel):
    categories: dict[str, list[str]]


def _error_status(exc: BotError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, InputError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, PermissionDenied):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, UpstreamError):
        return exc.status if exc.status == 503 else status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _draft_summary(draft) -> dict:
    return {
        "version": draft.version,
        "status": draft.status,
        "generated": draft.generated,
        "updated": draft.updated,
        "publishedAt": draft.published_at,
        "messageCount": draft.message_count,
        "imageCount": draft.image_count,
        "publishedToWix": draft.published_to_wix,
        "noteCount": sum(len(notes) for notes in draft.categories.values()),
    }


def _profile_json(profile, active_key: str) -> dict:
    return {"key": profile.key, "active": profile.key == active_key, **profile.to_json()}


def create_app(context) -> FastAPI:
    app = FastAPI(title="Senan Dashboard", version=__version__)
    settings = context.settings

    def require_auth(credentials: Optional[HTTPBasicCredentials] = Depends(security)):
        ok = credentials is not None and secrets.compare_digest(
            credentials.username.encode(), settings.dashboard_username.encode()
        ) and secrets.compare_digest(
            credentials.password.encode(), settings.dashboard_password.encode()
        )
        if not ok:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": 'Basic realm="Senan Dashboard"'},
            )

    @app.exception_handler(BotError)
    async def bot_error_handler(request: Request, exc: BotError):
        if isinstance(exc, (UpstreamError, PersistenceError)):
            context.monitor.track_error(exc, f"dashboard {request.url.path}")
        return JSONResponse(status_code=_error_status(exc), content={"error": exc.user_message, "detail": str(exc)})

    # ─────────────────────────────────────────
    # OPEN ROUTES
    # ─────────────────────────────────────────

    @app.get("/health")
    def health():
        return {"status": "ok", "message": f"{settings.bot_name} is running.", "uptime": context.monitor.uptime()}

    @app.get("/api")
    def api_index():
        return {
            "name": "Senan Dashboard",
            "version": __version__,
            "endpoints": sorted({route.path for route in app.routes if hasattr(route, "methods")}),
        }

    router = APIRouter(dependencies=[Depends(require_auth)])

    # ─────────────────────────────────────────
    # MONITORING
    # ─────────────────────────────────────────

    @router.get("/status")
    def bot_health_status():
        return context.monitor.status()

    @router.get("/metrics")
    def metrics():
        return {**context.monitor.system_metrics(), "health": context.monitor.health()}

    @router.get("/costs")
    def costs():
        return {
            **context.monitor.cost_metrics(),
            "rate_limiter": {
                "users": len(context.rate_limiter.all_users()),
                "estimated_spend_today": context.rate_limiter.estimated_spend(),
            },
        }

    @router.get("/bot/status")
    def bot_status():
        client = context.client
        connected = client is not None and client.is_ready()
        return {
            "connected": connected,
            "user": str(client.user) if connected else None,
            "guilds": len(client.guilds) if connected else 0,
            "latency_ms": round(client.latency * 1000) if connected else None,
            "active_profile": context.active_profile.key,
            "mode": "context" if context.context_passing else "files",
            "active_quizzes": len(context.quizzes),
        }

    @router.get("/bot/logs")
    def logs(limit: int = 100):
        return {"logs": context.monitor.recent_logs(limit=max(1, min(limit, 1000)))}

    @router.get("/bot/logs/errors")
    def error_logs(limit: int = 100):
        return {"logs": context.monitor.recent_logs(errors_only=True, limit=max(1, min(limit, 1000)))}

    @router.get("/bot/files")
    async def uploaded_files():
        return {"files": await context.completion.list_files(), "cache": context.file_cache.load()}

    # ─────────────────────────────────────────
    # PROFILES
    # ─────────────────────────────────────────

    @router.get("/bot/profiles")
    def list_profiles():
        active = context.active_profile.key
        return {"active": active, "profiles": [_profile_json(p, active) for p in context.profiles.list()]}

    @router.post("/bot/profiles", status_code=status.HTTP_201_CREATED)
    def create_profile(body: ProfileCreate):
        data = body.model_dump(exclude_none=True, exclude={"key"})
        profile = context.profiles.create(body.key, data)
        return _profile_json(profile, context.active_profile.key)

    @router.put("/bot/profiles/{name}")
    def update_profile(name: str, body: ProfileUpdate):
        changes = body.model_dump(exclude_none=True)
        if not changes:
            raise InputError("empty update", user_message="Nothing to update.")
        profile = context.profiles.update(name, changes)
        if profile.key == context.active_profile.key:
            context.refresh_active_profile()
        return _profile_json(profile, context.active_profile.key)

    @router.delete("/bot/profiles/{name}")
    def delete_profile(name: str):
        context.profiles.delete(name)
        context.refresh_active_profile()
        return {"deleted": name, "active": context.active_profile.key}

    @router.post("/bot/profiles/{name}/switch")
    def switch_profile(name: str):
        profile = context.switch_profile(name)
        return {"active": profile.key}

    # ─────────────────────────────────────────
    # PATCH-NOTE DRAFTS
    # ─────────────────────────────────────────

    @router.get("/drafts")
    def list_drafts():
        return {"drafts": [_draft_summary(d) for d in context.drafts.list()]}

    @router.get("/drafts/{version}")
    def get_draft(version: str):
        return context.drafts.get(version).to_json()

    @router.put("/drafts/{version}")
    def update_draft(version: str, body: DraftUpdate):
        return context.drafts.update_categories(version, body.categories).to_json()

    @router.delete("/drafts/{version}")
    def delete_draft(version: str):
        context.drafts.delete(version)
        return {"deleted": version}

    @router.post("/drafts/{version}/publish")
    async def publish(version: str):
        return await publish_draft(context, version)

    @router.post("/drafts/{version}/publish-web")
    async def publish_web(version: str):
        return await publish_to_web(context, version)

    @router.get("/drafts/{version}/images/{filename}")
    def draft_image(version: str, filename: str):
        check_version(version)
        name = os.path.basename(filename)
        path = os.path.join(settings.images_dir, version, name)
        if name != filename or not os.path.isfile(path):
            raise NotFoundError(f"No image {filename}", user_message="Image not found.")
        return FileResponse(path)

    app.include_router(router)
    return app
