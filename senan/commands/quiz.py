# !quiz: one lore question per channel; first correct answer within 60s wins.

import asyncio
import logging
import time

from senan.commands.base import reply
from senan.quiz import QUIZ_TIMEOUT_S, QuizSession, generate_question

logger = logging.getLogger(__name__)


async def handle(message, command, context):
    channel_id = message.channel.id

    if command.subcommand == "stop":
        if context.quizzes.pop(channel_id, None) is None:
            await reply(message, "There's no quiz running here.")
        else:
            await reply(message, "🎯 Quiz stopped!")
        return

    if channel_id in context.quizzes:
        await reply(message, "🎯 A quiz is already active! Use `!quiz stop` to end it first.")
        return

    decision = context.rate_limiter.check(message.author.id, "quiz")
    if not decision.allowed:
        await reply(message, f"⏳ {decision.message}")
        return

    question = generate_question(context.knowledge.load_all())
    if question is None:
        await reply(message, "❌ I couldn't make a quiz question from the current knowledge base.")
        return

    session = QuizSession(question=question, channel_id=channel_id)
    context.quizzes[channel_id] = session
    await reply(message, f"🎯 **QUIZ TIME!** 🎯\n\n**Question:** {question.question}\n\n*First person to answer correctly wins!*")

    prefix = context.settings.command_prefix

    def check(candidate):
        if candidate.channel.id != channel_id or candidate.author.bot:
            return False
        if candidate.content.startswith(prefix):
            return False
        session.attempts += 1
        return question.is_correct(candidate.content)

    try:
        winner = await context.client.wait_for("message", check=check, timeout=QUIZ_TIMEOUT_S)
    except asyncio.TimeoutError:
        if context.quizzes.get(channel_id) is session:
            del context.quizzes[channel_id]
            await message.channel.send(f"⏰ **Time's up!** The answer was: **{question.full_answer}**")
        return

    if context.quizzes.get(channel_id) is not session:
        return  # stopped while waiting
    del context.quizzes[channel_id]
    elapsed = round(time.time() - session.started)
    logger.info("Quiz in %s won by %s after %d attempts", channel_id, winner.author.id, session.attempts)
    await winner.reply(
        f"🎉 **CORRECT!** **{winner.author.display_name}** got it!\n"
        f"**Answer:** {question.full_answer}\n**Time:** {elapsed}s · **Attempts:** {session.attempts}"
    )
