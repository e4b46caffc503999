# Runtime configuration for Senan.
# Everything comes from the environment (.env is loaded first); the Settings
# dataclass is built once in bot.main() and handed to BotContext.

import json
import logging
import logging.handlers
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from dotenv import load_dotenv

load_dotenv()

# Paths
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring non-integer %s=%r", name, raw)
        return default


def _env_list(name: str) -> list:
    """Comma-separated env var → list of stripped, non-empty strings."""
    return [part.strip() for part in os.getenv(name, "").split(",") if part.strip()]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    discord_token: str = ""
    anthropic_api_key: str = ""
    command_prefix: str = "!"

    # Branding
    bot_name: str = "Senan"
    game_name: str = "Adrullan"

    # Models (the fallback is tried once if the primary call fails)
    model: str = "claude-sonnet-4-5-20250929"
    fallback_model: str = "claude-sonnet-4-20250514"
    response_max_tokens: int = 1500
    formatter_max_tokens: int = 4000

    # Directories
    data_dir: str = os.path.join(BASE_DIR, "data")
    profiles_dir: str = os.path.join(BASE_DIR, "profiles")
    logs_dir: str = os.path.join(BASE_DIR, "logs")

    # Discord ids
    patch_notes_channel_id: int = 0
    patch_notes_author_id: int = 0
    announce_channel_id: int = 0
    admin_user_ids: list = field(default_factory=list)
    admin_role_names: list = field(default_factory=list)

    # Rate limiting
    daily_limit: int = 20
    cooldown_ms: int = 30_000
    heavy_cooldown_ms: int = 120_000

    # Dashboard
    dashboard_enabled: bool = True
    dashboard_host: str = "0.0.0.0"
    dashboard_port: int = 3000
    dashboard_username: str = "admin"
    dashboard_password: str = "admin123"

    # Wix media manager (optional; uploads are skipped when unset)
    wix_api_key: str = ""
    wix_site_id: str = ""

    @property
    def drafts_dir(self) -> str:
        return os.path.join(self.data_dir, "patch-notes-drafts")

    @property
    def images_dir(self) -> str:
        return os.path.join(self.data_dir, "patch-notes-images")

    @property
    def file_cache_path(self) -> str:
        return os.path.join(self.data_dir, "uploaded_files.json")

    def is_admin_id(self, user_id) -> bool:
        return str(user_id) in self.admin_user_ids

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            discord_token=os.getenv("DISCORD_TOKEN", ""),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            command_prefix=os.getenv("COMMAND_PREFIX", defaults.command_prefix),
            bot_name=os.getenv("BOT_NAME", defaults.bot_name),
            game_name=os.getenv("GAME_NAME", defaults.game_name),
            model=os.getenv("CLAUDE_MODEL", defaults.model),
            fallback_model=os.getenv("CLAUDE_FALLBACK_MODEL", defaults.fallback_model),
            response_max_tokens=_env_int("RESPONSE_MAX_TOKENS", defaults.response_max_tokens),
            formatter_max_tokens=_env_int("FORMATTER_MAX_TOKENS", defaults.formatter_max_tokens),
            data_dir=os.getenv("DATA_DIR", defaults.data_dir),
            profiles_dir=os.getenv("PROFILES_DIR", defaults.profiles_dir),
            logs_dir=os.getenv("LOGS_DIR", defaults.logs_dir),
            patch_notes_channel_id=_env_int("PATCH_NOTES_CHANNEL_ID", 0),
            patch_notes_author_id=_env_int("PATCH_NOTES_AUTHOR_ID", 0),
            announce_channel_id=_env_int("ANNOUNCE_CHANNEL_ID", 0),
            admin_user_ids=_env_list("ADMIN_USER_IDS"),
            admin_role_names=_env_list("ADMIN_ROLE_NAMES") or ["Admin"],
            daily_limit=_env_int("DAILY_LIMIT", defaults.daily_limit),
            cooldown_ms=_env_int("COOLDOWN_MS", defaults.cooldown_ms),
            heavy_cooldown_ms=_env_int("HEAVY_COOLDOWN_MS", defaults.heavy_cooldown_ms),
            dashboard_enabled=_env_bool("DASHBOARD_ENABLED", True),
            dashboard_host=os.getenv("DASHBOARD_HOST", defaults.dashboard_host),
            dashboard_port=_env_int("DASHBOARD_PORT", defaults.dashboard_port),
            dashboard_username=os.getenv("DASHBOARD_USERNAME", defaults.dashboard_username),
            dashboard_password=os.getenv("DASHBOARD_PASSWORD", defaults.dashboard_password),
            wix_api_key=os.getenv("WIX_API_KEY", ""),
            wix_site_id=os.getenv("WIX_SITE_ID", ""),
        )


# ─────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────

LOG_FILE = "senan.log"
ERROR_LOG_FILE = "errors.log"
LOG_RETENTION_DAYS = 30


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line so Monitor can tail and filter the files."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["stack"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(logs_dir: str, level: int = logging.INFO) -> None:
    """
    Configure the root logger once for the whole process.

    Console gets a readable format; logs/senan.log gets JSON lines rotated at
    midnight (30 days kept, older rotations are deleted by the handler);
    logs/errors.log receives ERROR and above only.
    """
    os.makedirs(logs_dir, exist_ok=True)

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
    ))

    daily = logging.handlers.TimedRotatingFileHandler(
        os.path.join(logs_dir, LOG_FILE),
        when="midnight",
        backupCount=LOG_RETENTION_DAYS,
        encoding="utf-8",
    )
    daily.setFormatter(JsonLineFormatter())

    errors = logging.FileHandler(os.path.join(logs_dir, ERROR_LOG_FILE), encoding="utf-8")
    errors.setLevel(logging.ERROR)
    errors.setFormatter(JsonLineFormatter())

    logging.basicConfig(level=level, handlers=[console, daily, errors], force=True)
    # discord.py is chatty at INFO (gateway heartbeats, resumes)
    logging.getLogger("discord").setLevel(logging.WARNING)
