# Command parsing and the reply helpers every handler shares.

from dataclasses import dataclass, field

from senan.errors import PermissionDenied
from senan.text import split_message


@dataclass
class ParsedCommand:
    name: str
    args: list = field(default_factory=list)
    flags: set = field(default_factory=set)

    @property
    def text(self) -> str:
        """The free-text argument: every non-flag token after the name."""
        return " ".join(self.args)

    @property
    def subcommand(self) -> str:
        return self.args[0].lower() if self.args else ""

    def rest(self, skip: int = 1) -> str:
        return " ".join(self.args[skip:])

    def has_flag(self, *names) -> bool:
        return any(_flag_key(n) in self.flags for n in names)


def _flag_key(name: str) -> str:
    return name.lower().replace("-", "").replace("_", "")


def parse_command(content: str, prefix: str = "!"):
    """
    "!patchnotes --with-images" → ParsedCommand("patchnotes", [], {"withimages"}).

    Tokens starting with "--" (or a single "-" followed by a letter) anywhere
    after the name are flags; the rest are positional arguments. Returns None
    for messages that aren't commands.
    """
    content = (content or "").strip()
    if not prefix or not content.startswith(prefix):
        return None
    tokens = content[len(prefix):].split()
    if not tokens:
        return None

    args, flags = [], set()
    for token in tokens[1:]:
        if token.startswith("--") and len(token) > 2:
            flags.add(_flag_key(token[2:]))
        elif token.startswith("-") and len(token) > 1 and token[1].isalpha():
            flags.add(_flag_key(token[1:]))
        else:
            args.append(token)
    return ParsedCommand(name=tokens[0].lower(), args=args, flags=flags)


async def reply(message, text: str) -> None:
    """Reply to message, continuing in the channel when text is over 2000 chars."""
    chunks = split_message(text)
    if not chunks:
        return
    await message.reply(chunks[0])
    for chunk in chunks[1:]:
        await message.channel.send(chunk)


def is_admin(member, settings) -> bool:
    if settings.is_admin_id(member.id):
        return True
    permissions = getattr(member, "guild_permissions", None)
    if permissions is not None and permissions.administrator:
        return True
    return any(role.name in settings.admin_role_names for role in getattr(member, "roles", []))


def require_admin(message, context) -> None:
    if not is_admin(message.author, context.settings):
        raise PermissionDenied(f"{message.author.id} is not an admin")
