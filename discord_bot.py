import logging
from typing import Optional

import discord

from its_fine import (
    PipelineCoordinator,
    PipelineSnapshot,
    PipelineState,
    Settings,
    build_coordinator,
    configure_logging,
)

logger = logging.getLogger("discord_bot")

MESSAGE_LIMIT = 2000  # Discord rejects longer messages


def format_snapshot(snapshot: PipelineSnapshot) -> str:
    """Render the coordinator state the way the channel should see it."""
    if snapshot.state is PipelineState.FAILED:
        return f"Error: {snapshot.error_message}\nType `!news` to retry."
    if snapshot.is_loading:
        return "Loading headlines..."
    if not snapshot.headlines:
        return "No headlines yet. Type `!news` to fetch them."

    response = "📰 Headlines\n\n"
    for item in snapshot.headlines:
        response += f"**{item.title}**\n"
        response += f"*{item.published_at.strftime('%Y-%m-%d %H:%M')}*\n"
        if item.url:
            response += f"<{item.url}>\n"
        response += "\n"

    if len(response) > MESSAGE_LIMIT:
        response = response[:MESSAGE_LIMIT - 3] + "..."
    return response


def rewrite_notice(pipeline: PipelineCoordinator) -> Optional[str]:
    """Heads-up to post before a rewrite that will make the channel wait."""
    if pipeline.headlines and not pipeline.has_prefetched:
        return "Making things fine..."
    return None


def create_client(settings: Settings) -> discord.Client:
    # Reading commands needs the message content intent
    intents = discord.Intents.default()
    intents.message_content = True

    client = discord.Client(intents=intents)
    pipeline = build_coordinator(settings)

    @client.event
    async def on_ready():
        logger.info("Logged in as %s", client.user)
        await pipeline.start()

    @client.event
    async def on_message(message):
        if message.author == client.user:
            return

        if message.content.startswith("!news"):
            await message.channel.send("Fetching the latest headlines...")
            await pipeline.start()
            await message.channel.send(format_snapshot(pipeline.snapshot()))
        elif message.content.startswith("!fine"):
            notice = rewrite_notice(pipeline)
            if notice:
                await message.channel.send(notice)
            await pipeline.request_rewrite()
            await message.channel.send(format_snapshot(pipeline.snapshot()))

    return client


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    if not settings.discord_token:
        raise SystemExit("DISCORD_BOT_TOKEN is not set. Check your .env file.")
    create_client(settings).run(settings.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
