# !stats and !monitor: usage numbers and bot health for admins.

import json
import logging

from senan.commands.base import reply, require_admin

logger = logging.getLogger(__name__)

MONITOR_USAGE = "Usage: `!monitor status|metrics|health|logs [error]|profiles|files|restart`"


async def handle_stats(message, command, context):
    require_admin(message, context)
    limiter = context.rate_limiter
    users = limiter.all_users()
    requests_today = sum(u["requests_today"] for u in users)
    costs = context.monitor.cost_metrics()
    lines = [
        "📊 **Usage Statistics**",
        f"• Active users: {len(users)}",
        f"• Requests today: {requests_today}",
        f"• Daily limit per user: {limiter.daily_limit}",
        f"• Estimated spend today (rate limiter): ${limiter.estimated_spend():.2f}",
        f"• Tokens today: {costs['daily']['today']['tokens']} (~${costs['daily']['today']['cost']:.4f})",
        f"• Total API requests: {costs['total']['requests']} (~${costs['total']['cost']:.4f})",
    ]
    target = command.args[0] if command.args else None
    if target:
        stats = limiter.user_stats(target.strip("<@!>"))
        if stats:
            lines.append(f"\n**User {target}**: {stats['requests_today']}/{stats['daily_limit']} today, resets {stats['next_reset']}")
        else:
            lines.append(f"\nNo requests recorded for {target}.")
    await reply(message, "\n".join(lines))


def _format_logs(entries: list) -> str:
    if not entries:
        return "No log entries."
    lines = [f"[{e.get('timestamp', '')[:19]}] {e.get('level', '')}: {e.get('message', '')}"[:300] for e in entries]
    return "```\n" + "\n".join(lines) + "\n```"


async def handle_monitor(message, command, context):
    require_admin(message, context)
    monitor = context.monitor
    sub = command.subcommand or "status"

    if sub == "status":
        status = monitor.status()
        top = ", ".join(f"{name} ({count})" for name, count in status["top_commands"]) or "none"
        await reply(message, (
            f"🤖 **Bot Status: {status['status'].upper()}**\n"
            f"• Uptime: {status['uptime']}\n"
            f"• Memory: {status['memory_mb']} MB\n"
            f"• Messages: {status['messages']} · Errors: {status['errors']}\n"
            f"• Profile switches: {status['profile_switches']} · Uploads: {status['uploads']}\n"
            f"• Top commands: {top}\n"
            f"• Active profile: `{context.active_profile.key}` · "
            f"Mode: {'context passing' if context.context_passing else 'uploaded files'}"
        ))
    elif sub == "metrics":
        metrics = monitor.system_metrics()
        await reply(message, "```json\n" + json.dumps(metrics, indent=2, default=str)[:1900] + "\n```")
    elif sub == "health":
        health = monitor.health()
        checks = "\n".join(f"• {name}: {'✅' if ok else '❌'}" for name, ok in health["checks"].items())
        await reply(message, f"🩺 **Health: {'healthy' if health['healthy'] else 'unhealthy'}**\n{checks}\n• Error rate: {health['error_rate']}%")
    elif sub == "logs":
        errors_only = len(command.args) > 1 and command.args[1].lower().startswith("error")
        await reply(message, _format_logs(monitor.recent_logs(errors_only=errors_only, limit=15)))
    elif sub == "profiles":
        keys = ", ".join(f"`{p.key}`" for p in context.profiles.list()) or "none"
        await reply(message, f"👤 Active: `{context.active_profile.key}` · Available: {keys} · Switches: {monitor.profile_switches}")
    elif sub == "files":
        cached = context.file_cache.load()
        lines = [f"• {name}: {', '.join(entry.get('file_ids', []))}" for name, entry in cached.items()]
        await reply(message, "📁 **Uploaded knowledge files**\n" + ("\n".join(lines) or "None"))
    elif sub == "restart":
        logger.warning("Restart requested by %s", message.author.id)
        await reply(message, "🔄 Restarting. The process manager will bring me back.")
        await context.client.close()
    else:
        await reply(message, MONITOR_USAGE)
