# Error taxonomy shared by the command handlers and the dashboard.
# Every BotError carries a short message that is safe to show in chat; the
# router (commands/router.py) and the dashboard translate them at the edge.


class BotError(Exception):
    """Base class for failures that end a single command, never the bot."""

    user_message = "Something went wrong while handling that command."

    def __init__(self, detail: str = "", user_message: str = None):
        super().__init__(detail or user_message or self.user_message)
        if user_message:
            self.user_message = user_message


class InputError(BotError):
    """Malformed command, flag or request body."""

    user_message = "I couldn't understand that command."


class NotFoundError(BotError):
    """Unknown profile, draft, file or channel."""

    user_message = "I couldn't find that."


class UpstreamError(BotError):
    """
    The completion endpoint or media-upload endpoint failed.

    `retryable` is True for rate limiting and temporary unavailability; the
    user only ever sees the generic apology, the detail goes to the logs.
    """

    user_message = "Sorry, I'm having trouble reaching my knowledge service right now. Please try again in a moment."

    def __init__(self, detail: str = "", status: int = None, retryable: bool = False, user_message: str = None):
        super().__init__(detail, user_message)
        self.status = status
        self.retryable = retryable


class FormattingError(UpstreamError):
    """The LLM patch-note formatter returned something we can't use."""

    user_message = "The patch-note formatter failed. Try again, or run without --ai."


class NoVersionMarker(BotError):
    """Patch-notes history was exhausted without finding a version post."""

    user_message = "I couldn't find a version post (e.g. `0.10.43`) in the patch-notes channel."


class NoNotesFound(BotError):
    """A version marker exists but nothing worth collecting follows it."""

    user_message = "No patch notes have been posted since the last version marker."


class PersistenceError(BotError):
    """A JSON file under data/, profiles/ or logs/ could not be written."""

    user_message = "I couldn't save that change. Check the bot logs."


class PermissionDenied(BotError):
    """Admin-only command from a non-admin."""

    user_message = "This command is for admins only."
