# BotContext: the per-process state every command handler and dashboard route
# receives. Built once in bot.main(); nothing else in the package holds
# module-level state.

import logging
from dataclasses import dataclass, field

from senan.completion import CompletionClient
from senan.config import Settings
from senan.drafts import DraftStore
from senan.knowledge import KnowledgeStore
from senan.media import WixCMSPublisher, WixMediaUploader
from senan.models import Profile
from senan.monitor import Monitor
from senan.profiles import DEFAULT_PROFILE, ProfileStore
from senan.ratelimit import RateLimiter
from senan.uploads import FileCache

logger = logging.getLogger(__name__)


@dataclass
class BotContext:
    settings: Settings
    knowledge: KnowledgeStore
    profiles: ProfileStore
    rate_limiter: RateLimiter
    monitor: Monitor
    completion: CompletionClient
    drafts: DraftStore
    file_cache: FileCache
    media: WixMediaUploader
    cms: WixCMSPublisher
    active_profile: Profile = None
    # True: inline context from the knowledge base; False: attach uploaded files
    context_passing: bool = True
    quizzes: dict = field(default_factory=dict)
    # The discord.Client, set once the bot is constructed
    client: object = None

    @classmethod
    def from_settings(cls, settings: Settings, completion: CompletionClient = None) -> "BotContext":
        monitor = Monitor(settings.logs_dir)
        profiles = ProfileStore(settings.profiles_dir, game_name=settings.game_name)
        context = cls(
            settings=settings,
            knowledge=KnowledgeStore(settings.data_dir),
            profiles=profiles,
            rate_limiter=RateLimiter(settings.daily_limit, settings.cooldown_ms, settings.heavy_cooldown_ms),
            monitor=monitor,
            completion=completion or CompletionClient(
                api_key=settings.anthropic_api_key,
                model=settings.model,
                fallback_model=settings.fallback_model,
                monitor=monitor,
            ),
            drafts=DraftStore(settings.drafts_dir),
            file_cache=FileCache(settings.file_cache_path),
            media=WixMediaUploader(settings.wix_api_key, settings.wix_site_id),
            cms=WixCMSPublisher(settings.wix_api_key, settings.wix_site_id),
        )
        context.active_profile = profiles.default()
        return context

    def switch_profile(self, key: str) -> Profile:
        """Load a profile and make it the active one. Raises NotFoundError."""
        profile = self.profiles.get(key)
        previous = self.active_profile.key if self.active_profile else None
        self.active_profile = profile
        self.monitor.track_profile_switch(previous, profile.key)
        return profile

    def refresh_active_profile(self) -> Profile:
        """
        Re-read the active profile from disk after an edit or delete. A
        deleted active profile falls back to the default.
        """
        key = self.active_profile.key if self.active_profile else DEFAULT_PROFILE
        if self.profiles.exists(key):
            self.active_profile = self.profiles.get(key)
        else:
            logger.info("Active profile %s is gone, falling back to %s", key, DEFAULT_PROFILE)
            self.active_profile = self.profiles.default()
        return self.active_profile
