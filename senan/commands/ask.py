# !ask and !askall: answer a question from the knowledge base.

import logging

from senan import rag
from senan.commands.base import reply, require_admin
from senan.errors import InputError

logger = logging.getLogger(__name__)

NO_KNOWLEDGE = "The knowledge base is empty right now, so I can't answer questions yet."
NO_RELEVANT = (
    "I couldn't find anything about that in the knowledge base. "
    "Try rephrasing, or ask in #general-discussion."
)
HISTORY_LOOKBACK = 25
PREVIOUS_ANSWER_CHARS = 1500


async def previous_answer(message, bot_user_id):
    """The bot's most recent reply to this user in this channel, if any."""
    async for earlier in message.channel.history(limit=HISTORY_LOOKBACK, before=message):
        if earlier.author.id != bot_user_id or earlier.reference is None:
            continue
        replied_to = getattr(earlier.reference, "resolved", None)
        if replied_to is not None and getattr(replied_to, "author", None) is not None \
                and replied_to.author.id == message.author.id:
            return earlier.content[:PREVIOUS_ANSWER_CHARS]
    return None


async def _previous_for(message, context):
    if not context.active_profile.include_conversation_context or context.client is None:
        return None
    return await previous_answer(message, context.client.user.id)


async def handle_ask(message, command, context):
    question = command.text.strip()
    if not question:
        raise InputError("empty question", user_message="Usage: `!ask <your question>`")

    decision = context.rate_limiter.check(message.author.id, "ask")
    if not decision.allowed:
        await reply(message, f"⏳ {decision.message}")
        return

    settings = context.settings
    profile = context.active_profile
    previous = await _previous_for(message, context)

    async with message.channel.typing():
        if context.context_passing:
            documents = context.knowledge.load_all()
            if not documents:
                await reply(message, NO_KNOWLEDGE)
                return
            ordered = rag.rank_for_context(question, documents)
            if not ordered:
                await reply(message, NO_RELEVANT)
                return
            knowledge = rag.build_context(question, ordered, profile.max_tokens)
            answer = await rag.answer_question(
                context.completion, profile, question, knowledge,
                settings.game_name, settings.response_max_tokens, previous,
            )
        else:
            file_ids = context.file_cache.all_file_ids()
            if not file_ids:
                raise InputError(
                    "file mode without uploads",
                    user_message="File mode is on but nothing is uploaded. Run `!uploaddata upload` first.",
                )
            answer = await rag.answer_from_files(
                context.completion, profile, question, file_ids,
                settings.game_name, settings.response_max_tokens, previous,
            )

    logger.info("Answered question from %s (%d chars)", message.author.id, len(answer))
    await reply(message, f"**Question:** {question}\n\n{answer}")


async def handle_askall(message, command, context):
    """Admin-only: answer with every document as context, no rate limit."""
    require_admin(message, context)
    question = command.text.strip()
    if not question:
        raise InputError("empty question", user_message="Usage: `!askall <your question>`")

    documents = context.knowledge.load_all()
    if not documents:
        await reply(message, NO_KNOWLEDGE)
        return

    settings = context.settings
    async with message.channel.typing():
        knowledge = rag.build_all_context(documents)
        answer = await rag.answer_question(
            context.completion, context.active_profile, question, knowledge,
            settings.game_name, settings.response_max_tokens,
        )
    await reply(message, f"**Question (all documents):** {question}\n\n{answer}")
