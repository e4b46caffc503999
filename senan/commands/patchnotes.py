# !patchnotes: draft patch notes from the patch-notes channel, list drafts,
# publish one to the announcement channel or the website. publish_draft() and
# publish_to_web() are shared with the dashboard's publish endpoints.

import asyncio
import logging

import discord

from senan import patchnotes
from senan.commands.base import reply, require_admin
from senan.drafts import check_version
from senan.errors import InputError, NotFoundError, UpstreamError
from senan.media import download_images, release_dates

logger = logging.getLogger(__name__)

PREVIEW_MESSAGES = 3


async def _channel(client, channel_id: int):
    if not channel_id:
        raise InputError("channel not configured", user_message="That channel isn't configured (check the bot's .env).")
    channel = client.get_channel(channel_id)
    if channel is None:
        try:
            channel = await client.fetch_channel(channel_id)
        except discord.HTTPException as e:
            raise NotFoundError(str(e), user_message="I can't see the configured channel.") from e
    return channel


async def publish_draft(context, version: str) -> dict:
    """
    Post a draft to the announcement channel as "**version**" followed by the
    Discord rendering split into ≤1900-char messages, then mark it published.
    """
    check_version(version)
    draft = context.drafts.get(version)
    if context.client is None:
        raise UpstreamError("Discord client not running", status=503)
    channel = await _channel(context.client, context.settings.announce_channel_id)

    messages = [f"**{draft.version}**"] + patchnotes.split_for_discord(draft.discord)
    try:
        for text in messages:
            await channel.send(text)
    except discord.HTTPException as e:
        raise UpstreamError(f"Posting patch notes failed: {e}", status=getattr(e, "status", None)) from e

    published = context.drafts.mark_published(version)
    logger.info("Published patch notes %s (%d messages)", version, len(messages))
    return {"version": published.version, "messages": len(messages), "published_at": published.published_at}


async def publish_to_web(context, version: str) -> dict:
    """
    Upsert a draft's HTML, with its uploaded screenshots, into the website's
    patch-notes collection and record the item id on the draft.
    """
    check_version(version)
    draft = context.drafts.get(version)
    if not context.cms.configured:
        raise UpstreamError(
            "Wix credentials not configured", status=503,
            user_message="Website publishing isn't configured (set WIX_API_KEY and WIX_SITE_ID).",
        )
    release_date, display_date = release_dates(draft.published_at or draft.generated)
    result = await asyncio.to_thread(
        context.cms.publish, draft.version, patchnotes.render_web_html(draft), release_date, display_date,
    )
    context.drafts.mark_published_to_web(version, result["itemId"])
    return result


async def _attach_images(context, draft):
    settings = context.settings
    images = await asyncio.to_thread(download_images, draft.raw_notes, draft.version, settings.images_dir)
    if images and context.media.configured:
        images = await asyncio.to_thread(context.media.upload_all, images, draft.version)
    return draft.model_copy(update={"downloaded_images": images})


async def handle(message, command, context):
    require_admin(message, context)
    sub = command.subcommand

    if sub == "drafts":
        drafts = context.drafts.list()
        if not drafts:
            await reply(message, "No patch-note drafts.")
            return
        lines = [f"• `{d.version}` {d.status}, {sum(len(n) for n in d.categories.values())} notes, generated {d.generated[:10]}" for d in drafts]
        await reply(message, "**Patch-note drafts**\n" + "\n".join(lines))
        return

    if sub == "publishweb":
        if len(command.args) < 2:
            raise InputError("missing version", user_message="Usage: `!patchnotes publishweb <version>`")
        result = await publish_to_web(context, command.args[1])
        await reply(message, f"🌐 Website patch notes for **{result['version']}** {result['action']}.")
        return

    if sub == "publish":
        if len(command.args) < 2:
            raise InputError("missing version", user_message="Usage: `!patchnotes publish <version>`")
        result = await publish_draft(context, command.args[1])
        await reply(message, f"📣 Published **{result['version']}** in {result['messages']} message(s).")
        return

    settings = context.settings
    with_images = command.has_flag("withimages", "images")
    use_ai = command.has_flag("ai")

    await reply(message, "🔍 Scanning the patch-notes channel...")
    channel = await _channel(context.client, settings.patch_notes_channel_id)
    async with message.channel.typing():
        draft = await patchnotes.assemble(
            channel,
            marker_author_id=settings.patch_notes_author_id,
            bot_user_id=context.client.user.id,
            command_prefix=settings.command_prefix,
            with_images=with_images,
            completion_client=context.completion if use_ai else None,
            formatter_max_tokens=settings.formatter_max_tokens,
        )
        if with_images and draft.image_count:
            draft = await _attach_images(context, draft)
    context.drafts.save(draft)

    note_count = sum(len(notes) for notes in draft.categories.values())
    summary = f"📝 **Draft {draft.version}** saved: {draft.message_count} message(s), {note_count} note(s)"
    if with_images:
        summary += f", {len(draft.downloaded_images)} image(s)"
    await reply(message, f"{summary}\nReview it on the dashboard at `/drafts/{draft.version}`. Preview:")
    for text in patchnotes.split_for_discord(draft.discord)[:PREVIEW_MESSAGES]:
        await message.channel.send(text)
