# !profile: list, inspect, switch and edit personality profiles.

import logging

from senan.commands.base import reply, require_admin
from senan.errors import InputError
from senan.profiles import DEFAULT_PROFILE

logger = logging.getLogger(__name__)

USAGE = (
    "**Profile commands**\n"
    "`!profile list` · `!profile current` · `!profile info <name>`\n"
    "Admin: `!profile switch <name>` · `!profile create <name> [description]` · "
    "`!profile update <name> <field> <value>` · `!profile delete <name>` · "
    "`!profile init` · `!profile context on|off`"
)

# Accepted spellings (lowercase, no separators) → Profile field
FIELD_NAMES = {
    "name": "display_name",
    "displayname": "display_name",
    "description": "description",
    "systemprompt": "system_prompt",
    "prompt": "system_prompt",
    "maxtokens": "max_tokens",
    "responselength": "response_length",
    "personality": "personality",
    "allowspeculation": "allow_speculation",
    "allowofftopic": "allow_off_topic",
    "includeconversationcontext": "include_conversation_context",
    "conversationcontext": "include_conversation_context",
    "citationstyle": "citation_style",
}
BOOL_FIELDS = {"allow_speculation", "allow_off_topic", "include_conversation_context"}
TRUE_WORDS = {"true", "on", "yes", "1"}
FALSE_WORDS = {"false", "off", "no", "0"}


def parse_bool(value: str) -> bool:
    value = value.lower()
    if value in TRUE_WORDS:
        return True
    if value in FALSE_WORDS:
        return False
    raise InputError(f"not a boolean: {value}", user_message=f"`{value}` should be on/off or true/false.")


def parse_field(field_name: str, value: str) -> tuple:
    key = FIELD_NAMES.get(field_name.lower().replace("_", "").replace("-", ""))
    if key is None:
        raise InputError(f"unknown field {field_name}", user_message=f"Unknown profile field `{field_name}`.")
    if key in BOOL_FIELDS:
        return key, parse_bool(value)
    if key == "max_tokens":
        try:
            return key, int(value)
        except ValueError as e:
            raise InputError(str(e), user_message="maxTokens must be a whole number.") from e
    return key, value


def describe(profile, active: bool = False) -> str:
    marker = " ✅ (active)" if active else ""
    return (
        f"**{profile.display_name}** (`{profile.key}`){marker}\n"
        f"{profile.description}\n"
        f"• Context budget: {profile.max_tokens} tokens\n"
        f"• Response length: {profile.response_length} · Personality: {profile.personality}\n"
        f"• Speculation: {'on' if profile.allow_speculation else 'off'} · "
        f"Off-topic: {'on' if profile.allow_off_topic else 'off'} · "
        f"Conversation context: {'on' if profile.include_conversation_context else 'off'}\n"
        f"• Citations: {profile.citation_style}"
    )


async def handle(message, command, context):
    sub = command.subcommand
    store = context.profiles
    active = context.active_profile

    if sub in ("", "help"):
        await reply(message, USAGE)
        return

    if sub == "list":
        profiles = store.list()
        if not profiles:
            await reply(message, "No profiles yet. An admin can run `!profile init`.")
            return
        lines = [f"{'✅' if p.key == active.key else '•'} `{p.key}`: {p.display_name} ({p.description})" for p in profiles]
        await reply(message, "**Profiles**\n" + "\n".join(lines))
        return

    if sub in ("current", "active"):
        await reply(message, describe(active, active=True))
        return

    if sub == "info":
        key = command.args[1] if len(command.args) > 1 else active.key
        profile = store.get(key)
        await reply(message, describe(profile, active=profile.key == active.key))
        return

    require_admin(message, context)

    if sub in ("switch", "set"):
        if len(command.args) < 2:
            raise InputError("missing name", user_message="Usage: `!profile switch <name>`")
        profile = context.switch_profile(command.args[1])
        await reply(message, f"🔄 Switched to **{profile.display_name}** (`{profile.key}`).")
        return

    if sub == "create":
        if len(command.args) < 2:
            raise InputError("missing name", user_message="Usage: `!profile create <name> [description]`")
        data = {}
        description = command.rest(2)
        if description:
            data["description"] = description
        profile = store.create(command.args[1], data)
        await reply(message, f"✨ Created profile `{profile.key}`. Edit it with `!profile update {profile.key} <field> <value>`.")
        return

    if sub == "update":
        if len(command.args) < 4:
            raise InputError("missing args", user_message="Usage: `!profile update <name> <field> <value>`")
        key = command.args[1]
        field_name, value = parse_field(command.args[2], command.rest(3))
        profile = store.update(key, {field_name: value})
        if profile.key == active.key:
            context.refresh_active_profile()
        await reply(message, f"✏️ Updated `{profile.key}`: {field_name} = {value!r}")
        return

    if sub == "delete":
        if len(command.args) < 2:
            raise InputError("missing name", user_message="Usage: `!profile delete <name>`")
        key = command.args[1].lower()
        store.delete(key)
        note = ""
        if key == active.key:
            context.refresh_active_profile()
            note = f" Active profile fell back to `{DEFAULT_PROFILE}`."
        await reply(message, f"🗑️ Deleted profile `{key}`.{note}")
        return

    if sub == "init":
        created = store.initialize_defaults()
        text = f"Created: {', '.join(created)}" if created else "All default profiles already exist."
        await reply(message, f"📁 {text}")
        return

    if sub == "context":
        if len(command.args) < 2:
            raise InputError("missing value", user_message="Usage: `!profile context on|off`")
        enabled = parse_bool(command.args[1])
        store.update(active.key, {"include_conversation_context": enabled})
        context.refresh_active_profile()
        await reply(message, f"💬 Conversation context {'enabled' if enabled else 'disabled'} for `{active.key}`.")
        return

    await reply(message, USAGE)
