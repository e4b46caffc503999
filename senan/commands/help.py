# !help

from senan.commands.base import is_admin, reply


def help_text(prefix: str, bot_name: str, admin: bool) -> str:
    lines = [
        f"**{bot_name} commands**",
        f"`{prefix}ask <question>` ask about the game's lore, mechanics or FAQ",
        f"`{prefix}quiz` start a lore quiz (`{prefix}quiz stop` to end it)",
        f"`{prefix}profile list|current|info <name>` see personality profiles",
        f"`{prefix}help` this message",
    ]
    if admin:
        lines += [
            "",
            "**Admin**",
            f"`{prefix}askall <question>` answer using every document",
            f"`{prefix}profile switch|create|update|delete|init|context` manage profiles",
            f"`{prefix}patchnotes [--with-images] [--ai]` draft notes since the last version post",
            f"`{prefix}patchnotes drafts` · `{prefix}patchnotes publish <version>` · `{prefix}patchnotes publishweb <version>`",
            f"`{prefix}uploaddata upload|toggle|status|list|delete|deleteall|clear` uploaded files",
            f"`{prefix}index <forum_id> [style]` list forum threads",
            f"`{prefix}refreshfaq <forum_id>` rebuild data/forum_faq.json from a forum",
            f"`{prefix}stats` usage and spend",
            f"`{prefix}monitor status|metrics|health|logs|profiles|files|restart`",
        ]
    return "\n".join(lines)


async def handle(message, command, context):
    settings = context.settings
    await reply(message, help_text(settings.command_prefix, settings.bot_name, is_admin(message.author, settings)))
