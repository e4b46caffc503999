# CommandRouter: maps "!name" to a handler and turns handler failures into
# chat replies. Holds no state of its own.

import logging

from senan.commands import admin, ask, forum, patchnotes, profile, quiz, uploads
from senan.commands import help as help_command
from senan.commands.base import parse_command, reply
from senan.errors import BotError, InputError, NotFoundError, PermissionDenied

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Sorry, something went wrong while handling that. The error has been logged."

# Exact names only: "!asking" is not "!ask"
COMMANDS = {
    "help": help_command.handle,
    "ask": ask.handle_ask,
    "askall": ask.handle_askall,
    "quiz": quiz.handle,
    "profile": profile.handle,
    "stats": admin.handle_stats,
    "monitor": admin.handle_monitor,
    "uploaddata": uploads.handle,
    "patchnotes": patchnotes.handle,
    "index": forum.handle_index,
    "refreshfaq": forum.handle_refreshfaq,
}

# Failures caused by the user rather than the bot; not counted as errors
USER_ERRORS = (InputError, NotFoundError, PermissionDenied)


async def dispatch(message, context) -> bool:
    """
    Run the command in message, if it is one. Returns True when a handler ran.
    Every failure ends in a reply; none escape to the Discord event loop.
    """
    command = parse_command(message.content, context.settings.command_prefix)
    if command is None:
        return False
    handler = COMMANDS.get(command.name)
    if handler is None:
        return False

    context.monitor.track_message(command.name)
    logger.info("!%s from %s in %s", command.name, message.author.id, getattr(message.channel, "id", "?"))
    try:
        await handler(message, command, context)
    except USER_ERRORS as e:
        logger.info("!%s rejected: %s", command.name, e)
        await reply(message, e.user_message)
    except BotError as e:
        context.monitor.track_error(e, f"!{command.name}")
        await reply(message, e.user_message)
    except Exception as e:
        context.monitor.track_error(e, f"!{command.name}")
        await reply(message, GENERIC_ERROR)
    return True
