# !index and !refreshfaq: turn a Discord forum channel into a thread index or
# into a knowledge file (data/forum_faq.json).

import asyncio
import logging
from datetime import date

import discord

from senan.commands.base import reply, require_admin
from senan.errors import InputError, NotFoundError
from senan.models import Document
from senan.text import split_message

logger = logging.getLogger(__name__)

FORUM_FAQ_FILE = "forum_faq.json"
THREAD_CONTENT_CHARS = 3000
THREAD_HISTORY_LIMIT = 100
INDEX_STYLES = ("discord", "markdown", "plain", "numbered")


async def _forum_channel(context, raw_id: str):
    try:
        channel_id = int(raw_id)
    except (TypeError, ValueError) as e:
        raise InputError(str(e), user_message="Forum ids are numbers (right-click the forum → Copy ID).") from e
    client = context.client
    channel = client.get_channel(channel_id)
    if channel is None:
        try:
            channel = await client.fetch_channel(channel_id)
        except discord.HTTPException as e:
            raise NotFoundError(str(e), user_message="I can't see that channel.") from e
    if not isinstance(channel, discord.ForumChannel):
        raise InputError("not a forum", user_message="That's not a forum channel.")
    return channel


async def _active_threads(forum) -> list:
    threads = await forum.guild.active_threads()
    return [t for t in threads if t.parent_id == forum.id]


def index_line(style: str, position: int, name: str, url: str) -> str:
    if style == "markdown":
        return f"- [{name}]({url})"
    if style == "plain":
        return f"{name} - {url}"
    if style == "numbered":
        return f"{position}. [{name}]({url})"
    return f"#{name}"


def index_messages(threads: list, style: str) -> list:
    """Index lines for threads, packed into Discord-sized messages."""
    lines = [index_line(style, i + 1, t.name, t.jump_url) for i, t in enumerate(threads)]
    return split_message("\n".join(lines))


async def handle_index(message, command, context):
    if not command.args:
        raise InputError("missing forum id", user_message=f"Usage: `!index <forum_channel_id> [style]`\nStyles: {', '.join(INDEX_STYLES)}")
    style = command.args[1].lower() if len(command.args) > 1 else "discord"
    if style not in INDEX_STYLES:
        style = "discord"

    forum = await _forum_channel(context, command.args[0])
    threads = await _active_threads(forum)
    chunks = index_messages(threads, style)
    if not chunks:
        await reply(message, "That forum has no active threads.")
        return

    for chunk in chunks:
        await message.channel.send(chunk)


async def thread_document(thread) -> Document:
    """One forum thread → one high-priority FAQ document."""
    today = date.today().isoformat()
    try:
        messages = [m async for m in thread.history(limit=THREAD_HISTORY_LIMIT, oldest_first=True)]
    except discord.HTTPException as e:
        logger.warning("Could not read thread %s: %s", thread.name, e)
        return Document(
            id=f"forum_{thread.id}", title=thread.name, content=f"Forum thread: {thread.name}",
            category="faq", tags=["forum", "community", "faq"], source_url=thread.jump_url,
            priority="medium", last_updated=today,
        )
    content = "\n\n".join(m.content for m in messages if not m.author.bot and m.content.strip())
    return Document(
        id=f"forum_{thread.id}",
        title=thread.name,
        content=content[:THREAD_CONTENT_CHARS] or f"Forum thread: {thread.name}",
        category="faq",
        tags=["forum", "community", "faq", "discord"],
        source_url=thread.jump_url,
        priority="high",
        last_updated=today,
    )


async def handle_refreshfaq(message, command, context):
    require_admin(message, context)
    if not command.args:
        raise InputError("missing forum id", user_message="Usage: `!refreshfaq <forum_channel_id>`")

    decision = context.rate_limiter.check(message.author.id, "refresh")
    if not decision.allowed:
        await reply(message, f"⏳ {decision.message}")
        return

    forum = await _forum_channel(context, command.args[0])
    await reply(message, "🔄 Fetching forum content... This may take a moment.")

    documents = []
    for thread in await _active_threads(forum):
        documents.append(await thread_document(thread))
        await asyncio.sleep(0.1)  # stay clear of Discord rate limits

    context.knowledge.save_documents(FORUM_FAQ_FILE, documents)
    full = sum(1 for d in documents if d.priority == "high")
    await reply(message, (
        "✅ **FAQ Knowledge Base Updated!**\n"
        f"• {full} threads with content\n• {len(documents)} total entries\n"
        f"• Saved to `data/{FORUM_FAQ_FILE}`"
    ))
