# !uploaddata: manage knowledge files uploaded through the Files API and
# toggle between inline context and uploaded-file answering.

import logging

from senan.commands.base import reply, require_admin
from senan.commands.profile import parse_bool
from senan.errors import InputError
from senan.uploads import delete_all_uploads, upload_knowledge

logger = logging.getLogger(__name__)

USAGE = (
    "**Upload commands** (admin)\n"
    "`!uploaddata upload [filename]` · `!uploaddata toggle on|off` · `!uploaddata status`\n"
    "`!uploaddata list` · `!uploaddata delete <file_id>` · `!uploaddata deleteall` · `!uploaddata clear`"
)


async def handle(message, command, context):
    require_admin(message, context)
    sub = command.subcommand
    client = context.completion
    cache = context.file_cache

    if sub == "upload":
        filename = command.args[1] if len(command.args) > 1 else None
        await reply(message, "📤 Uploading knowledge files...")
        uploaded = await upload_knowledge(client, context.knowledge, cache, filename)
        for name, file_id in uploaded.items():
            context.monitor.track_upload(name, True, file_id)
        lines = [f"• {name} → `{file_id}`" for name, file_id in uploaded.items()]
        await reply(message, f"✅ Uploaded {len(uploaded)} file(s)\n" + "\n".join(lines))

    elif sub == "toggle":
        if len(command.args) < 2:
            raise InputError("missing value", user_message="Usage: `!uploaddata toggle on|off` (on = answer from uploaded files)")
        use_files = parse_bool(command.args[1])
        context.context_passing = not use_files
        mode = "uploaded files" if use_files else "context passing"
        logger.info("Answer mode switched to %s by %s", mode, message.author.id)
        await reply(message, f"🔁 Now answering with **{mode}**.")

    elif sub == "status":
        cached = cache.load()
        mode = "context passing" if context.context_passing else "uploaded files"
        await reply(message, f"📁 Mode: **{mode}** · Cached uploads: {len(cached)} file(s), {len(cache.all_file_ids())} id(s)")

    elif sub == "list":
        files = await client.list_files()
        if not files:
            await reply(message, "No files in the workspace.")
            return
        lines = [f"• `{f['id']}` {f['filename']} ({f['size_bytes']} bytes)" for f in files]
        await reply(message, "**Workspace files**\n" + "\n".join(lines))

    elif sub == "delete":
        if len(command.args) < 2:
            raise InputError("missing id", user_message="Usage: `!uploaddata delete <file_id>`")
        file_id = command.args[1]
        await client.delete_file(file_id)
        cache.remove_file_id(file_id)
        await reply(message, f"🗑️ Deleted `{file_id}`.")

    elif sub == "deleteall":
        count = await delete_all_uploads(client, cache)
        await reply(message, f"🗑️ Deleted {count} file(s) and cleared the cache.")

    elif sub == "clear":
        cache.clear()
        await reply(message, "🧹 Cleared the local file-id cache (remote files untouched).")

    else:
        await reply(message, USAGE)
