"""
Main bot module.

Entry point for running the bot.
"""
import sys
import traceback
from typing import Optional

from discord import Intents, TextChannel
from discord.ext import commands
from discord.ext.commands import Context
from loguru import logger

from muster import settings
from muster.database import MusterDatabase
from muster.events.calendar.event_store import EventRecordStore
from muster.events.events_cog import EventsCog
from muster.events.reminders.discord_notifier import DiscordNotifier
from muster.events.role_config import RoleConfig


def setup_logging() -> None:
    """Replace the default logger output with the console format."""
    logger.remove()
    logger.level("DEBUG", color="<fg 251>")
    logger.add(
        sys.stderr,
        format="<bg 239><fg 15> {time:YYYY-MM-DD HH:mm:ss.SSS} </fg 15></bg 239>"
               "<bg 32><lvl><b> {level} </b></lvl></bg 32>"
               "<n> {message}</n>",
        level=settings.console_log_level
    )


class MusterBot(commands.Bot):
    """Muster Discord bot."""

    __slots__ = [
        "master_log_id",
        "log_channel",
        "first_start"
    ]

    def __init__(self) -> None:
        """Initializer for the MusterBot class."""
        intents = Intents.default()
        intents.reactions = True
        intents.members = True

        super().__init__(
            command_prefix=settings.command_prefix,
            help_command=None,
            description=settings.bot_description,
            owner_ids=settings.bot_owners,
            intents=intents
        )

        self.log_channel: Optional[TextChannel] = None
        self.master_log_id: Optional[int] = None
        self.first_start = True

    async def on_error(self, event_method: str, *args, **kwargs) -> None:
        """
        Called when an event raises an uncaught exception.

        :param event_method: The name of the event that raised the
            exception
        :param args: Positional arguments for the event that raised the
            exception
        :param kwargs: Keyword arguments for the event that raised the
            exception
        """
        logger.error(
            "Exception raised in {}.\n\t{}",
            event_method,
            traceback.format_exc().replace("\n", "\n\t")
        )

    async def on_ready(self) -> None:
        """
        Called when Muster is done preparing the data received from
        Discord.

        This overrides the on_ready method from discord.Client.
        """
        if self.first_start:
            await self.on_first_ready()

    async def on_first_ready(self) -> None:
        """Muster's startup procedure."""
        logger.trace("Setting up master log channel.")
        log_channel = self.get_channel(settings.master_log_channel)
        if log_channel is not None and isinstance(log_channel, TextChannel):
            self.log_channel = log_channel
            logger.info(
                "Set up master log channel on #{} ({})",
                log_channel.name,
                log_channel.id
            )

            async def log_message(msg: str) -> None:
                await self.log_channel.send(msg)

            self.master_log_id = logger.add(
                log_message,
                colorize=False,
                backtrace=False,
                catch=False,
                format="**[{time:YYYY-MM-DD HH:mm:ss.SSS!UTC}][{level}]** "
                       "```\n{message}\n```",
                level=settings.master_log_level
            )
        else:
            logger.warning(
                "Bot master logging channel ID {} not found; setting ignored.",
                settings.master_log_channel
            )

        logger.info(
            "Muster has started on {} ({}) with {} server(s).",
            self.user.name,
            self.user.id,
            len(self.guilds)
        )

        # Load Events cog
        logger.info("Loading events cog.")
        store = EventRecordStore(MusterDatabase(settings.file_events_db))
        events_cog = EventsCog(
            self,
            store,
            DiscordNotifier(self),
            RoleConfig(settings.file_role_config)
        )
        self.add_cog(events_cog)
        events_cog.start()

        self.first_start = False


def main() -> None:
    """Set up logging and run the bot until it is shut down."""
    setup_logging()
    muster = MusterBot()

    @muster.command("botshutdown")
    @commands.is_owner()
    async def stop_command(context: Context) -> None:
        """
        Bot shutdown command.

        This is used for the sole purpose of stopping the bot safely and
        can only be activated by the bot owners.

        :param context: Command context
        """
        await context.send("I'll be back.")
        logger.info("Bot shutting down...")

        for name in list(muster.cogs.keys()):
            cog = muster.cogs[name]
            logger.info("Closing cog: {}", name)
            await cog.cog_save_all()

        await muster.close()

    muster.run(settings.bot_token)


if __name__ == "__main__":
    main()
