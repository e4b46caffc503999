# ProfileStore: personality profiles, one JSON file per profile in profiles/.
# Profiles are immutable values; the active one lives on BotContext and is
# swapped by reference. Files are re-read on every lookup so edits made from
# the dashboard and from chat see each other.

import json
import logging
import os
import re
from pydantic import ValidationError

from senan.errors import InputError, NotFoundError, PersistenceError
from senan.models import Profile

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "locked-down"
PROFILE_KEY_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,31}$")

# Fields callers may change through update(); key is the file name.
EDITABLE_FIELDS = {
    "display_name", "description", "system_prompt", "max_tokens", "response_length",
    "personality", "allow_speculation", "allow_off_topic",
    "include_conversation_context", "citation_style",
}


def _default_profiles(game: str) -> dict:
    """The four built-in profiles, keyed by profile key."""
    return {
        "locked-down": {
            "name": "Locked Down",
            "description": "Strict FAQ assistant with locked-down responses",
            "systemPrompt": (
                f"You are the official {game} FAQ assistant. You help community members by "
                "answering questions using only official documentation and FAQ entries.\n\n"
                "STRICT RULES:\n"
                "1. Only use information from the provided knowledge base context\n"
                "2. If information isn't available, say \"I don't have official information about that in our current FAQ\"\n"
                "3. Always cite sources using the entry id when available\n"
                f"4. Stay focused on {game}; don't answer off-topic questions\n"
                "5. Be helpful but concise (under 500 words)\n"
                "6. Never speculate or add unofficial information\n"
                "7. If asked about inappropriate topics, politely redirect to game-related questions"
            ),
            "maxTokens": 20000,
            "responseLength": "concise",
            "personality": "professional",
            "allowSpeculation": False,
            "allowOffTopic": False,
            "citationStyle": "faq-id",
        },
        "casual": {
            "name": "Casual Helper",
            "description": "Friendly and approachable assistant with relaxed tone",
            "systemPrompt": (
                f"You are a friendly and helpful assistant for {game}. You're knowledgeable "
                "about the game and love helping players!\n\n"
                "PERSONALITY:\n"
                "- Be warm, friendly and encouraging\n"
                "- Use casual language and the occasional emoji\n"
                "- Be patient with new players\n\n"
                "RULES:\n"
                "1. Use information from the provided knowledge base context\n"
                "2. If information isn't available, say so and suggest asking in #general-discussion\n"
                "3. Cite sources when available\n"
                "4. Keep responses under 600 words\n"
                "5. You can make reasonable inferences based on the context"
            ),
            "maxTokens": 25000,
            "responseLength": "conversational",
            "personality": "friendly",
            "allowSpeculation": True,
            "allowOffTopic": False,
            "citationStyle": "clickable-url",
        },
        "creative": {
            "name": "Creative Storyteller",
            "description": "Imaginative assistant that brings lore to life with creative flair",
            "systemPrompt": (
                f"You are a creative storyteller and lore expert for {game}. You bring the game "
                "world to life with vivid descriptions and engaging narratives.\n\n"
                "RULES:\n"
                "1. Use information from the provided knowledge base context\n"
                f"2. If information isn't available, say \"I don't have that specific information, but based on what I know about {game}...\"\n"
                "3. Always cite sources\n"
                "4. Keep responses under 800 words\n"
                "5. You can make creative connections and inferences, clearly marked as such"
            ),
            "maxTokens": 30000,
            "responseLength": "detailed",
            "personality": "creative",
            "allowSpeculation": True,
            "allowOffTopic": False,
            "citationStyle": "clickable-url",
        },
        "technical": {
            "name": "Technical Expert",
            "description": "Precise and detailed assistant focused on game mechanics and technical details",
            "systemPrompt": (
                f"You are a technical expert and game mechanics specialist for {game}. You provide "
                "precise, detailed information about game systems and mechanics.\n\n"
                "RULES:\n"
                "1. Use information from the provided knowledge base context\n"
                "2. If information isn't available, say \"I don't have official technical documentation for that specific mechanic\"\n"
                "3. Always cite sources\n"
                "4. Keep responses under 1000 words but be comprehensive\n"
                "5. Break complex mechanics down step by step"
            ),
            "maxTokens": 35000,
            "responseLength": "comprehensive",
            "personality": "technical",
            "allowSpeculation": True,
            "allowOffTopic": False,
            "citationStyle": "clickable-url",
        },
    }


def validate_key(key: str) -> str:
    key = (key or "").strip().lower()
    if not PROFILE_KEY_RE.match(key):
        raise InputError(
            f"Invalid profile key {key!r}",
            user_message="Profile names must be 1-32 characters: lowercase letters, digits, `-` or `_`.",
        )
    return key


class ProfileStore:

    def __init__(self, profiles_dir: str, game_name: str = "Adrullan"):
        self.profiles_dir = profiles_dir
        self.game_name = game_name

    def _path(self, key: str) -> str:
        return os.path.join(self.profiles_dir, f"{key}.json")

    def _read(self, path: str):
        key = os.path.splitext(os.path.basename(path))[0]
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return Profile.model_validate({**data, "key": key})
        except (OSError, json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning("Skipping unreadable profile %s: %s", path, e)
            return None

    def _write(self, profile: Profile) -> None:
        os.makedirs(self.profiles_dir, exist_ok=True)
        try:
            with open(self._path(profile.key), "w", encoding="utf-8") as f:
                json.dump(profile.to_json(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise PersistenceError(f"Could not write profile {profile.key}: {e}") from e

    def list(self) -> list:
        """Every readable profile, sorted by key."""
        if not os.path.isdir(self.profiles_dir):
            return []
        profiles = []
        for name in sorted(os.listdir(self.profiles_dir)):
            if name.endswith(".json"):
                profile = self._read(os.path.join(self.profiles_dir, name))
                if profile is not None:
                    profiles.append(profile)
        return profiles

    def get(self, key: str) -> Profile:
        key = (key or "").strip().lower()
        path = self._path(key)
        profile = self._read(path) if PROFILE_KEY_RE.match(key) and os.path.exists(path) else None
        if profile is None:
            raise NotFoundError(f"Profile {key!r} not found", user_message=f"Profile `{key}` not found.")
        return profile

    def exists(self, key: str) -> bool:
        return PROFILE_KEY_RE.match(key or "") is not None and os.path.exists(self._path(key))

    def create(self, key: str, data: dict) -> Profile:
        """
        Create a profile from a dict using either the camelCase file names or
        the snake_case attribute names. Missing display name / prompt get
        sensible defaults so `!profile create name` works on its own.
        """
        key = validate_key(key)
        if self.exists(key):
            raise InputError(f"Profile {key} exists", user_message=f"Profile `{key}` already exists.")
        base = _default_profiles(self.game_name)[DEFAULT_PROFILE]
        fields = {**data, "key": key}
        if "name" not in data and "display_name" not in data:
            fields["name"] = key.replace("-", " ").title()
        if "systemPrompt" not in data and "system_prompt" not in data:
            fields["systemPrompt"] = base["systemPrompt"]
        try:
            profile = Profile.model_validate(fields)
        except ValidationError as e:
            raise InputError(str(e), user_message="That profile definition isn't valid.") from e
        self._write(profile)
        logger.info("Created profile %s", key)
        return profile

    def update(self, key: str, changes: dict) -> Profile:
        """Merge changes (snake_case field names) into a profile; returns the new value."""
        current = self.get(key)
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise InputError(
                f"Unknown profile fields {sorted(unknown)}",
                user_message=f"Unknown profile field(s): {', '.join(sorted(unknown))}.",
            )
        try:
            updated = Profile.model_validate({**current.model_dump(), **changes})
        except ValidationError as e:
            raise InputError(str(e), user_message="Those profile values aren't valid.") from e
        self._write(updated)
        logger.info("Updated profile %s: %s", key, ", ".join(sorted(changes)))
        return updated

    def delete(self, key: str) -> None:
        key = (key or "").strip().lower()
        if key == DEFAULT_PROFILE:
            raise InputError("Refusing to delete default profile", user_message="The default profile can't be deleted.")
        self.get(key)
        try:
            os.remove(self._path(key))
        except OSError as e:
            raise PersistenceError(f"Could not delete profile {key}: {e}") from e
        logger.info("Deleted profile %s", key)

    def initialize_defaults(self) -> list:
        """Write any missing built-in profiles. Returns the keys created."""
        created = []
        for key, data in _default_profiles(self.game_name).items():
            if not self.exists(key):
                self._write(Profile.model_validate({**data, "key": key}))
                created.append(key)
        if created:
            logger.info("Initialized default profiles: %s", ", ".join(created))
        return created

    def default(self) -> Profile:
        """The default profile, written to disk first if it's missing."""
        if not self.exists(DEFAULT_PROFILE):
            self.initialize_defaults()
        return self.get(DEFAULT_PROFILE)
