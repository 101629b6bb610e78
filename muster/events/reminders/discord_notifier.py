"""
Discord Notifier Module.

Notifier implementation backed by the bot's Discord connection. Every
call to Discord is bounded by the notifier timeout; a call that runs
out of time counts as a failed call, which for the automatic reminder
means trying again on the next poll.
"""

import asyncio
from typing import Awaitable, List

from discord import Client, NotFound
from loguru import logger

from muster import settings
from muster.events.reminders.notifier import (
    DispatchFailure, Notifier, ReminderPayload
)
from muster.output import payload_embed
from muster.utils.discord_utils import FETCH_FAIL_EXCEPTIONS

SEND_FAIL_EXCEPTIONS = (*FETCH_FAIL_EXCEPTIONS, asyncio.TimeoutError)


class DiscordNotifier(Notifier):
    """Notifier sending messages through a Discord client."""

    __slots__ = ["client", "timeout"]

    def __init__(
            self,
            client: Client,
            timeout: float = settings.notifier_timeout_seconds
    ) -> None:
        """
        Initializer for the DiscordNotifier class.

        :param client: Discord client (usually the bot)
        :param timeout: Seconds allowed for a single Discord call
        """
        self.client = client
        self.timeout = timeout

    async def bounded(self, call: Awaitable):
        """
        Await a Discord call within the notifier timeout.

        :param call: Awaitable Discord call
        :return: Result of the call
        :raises asyncio.TimeoutError: Call took too long
        """
        return await asyncio.wait_for(call, timeout=self.timeout)

    async def fetch_channel(self, channel_ref: str):
        """
        Get a channel from cache, or from Discord if it isn't cached.

        :param channel_ref: Channel ID
        :return: Discord channel
        :raises NotFound: Channel does not exist
        """
        channel = self.client.get_channel(int(channel_ref))
        if channel is None:
            channel = await self.bounded(
                self.client.fetch_channel(int(channel_ref))
            )

        return channel

    async def resolve_destination(self, channel_ref: str) -> bool:
        try:
            await self.fetch_channel(channel_ref)
        except NotFound:
            return False
        except SEND_FAIL_EXCEPTIONS as e:
            raise DispatchFailure(
                f"Could not fetch channel {channel_ref}"
            ) from e

        return True

    async def send_broadcast(
            self,
            channel_ref: str,
            payload: ReminderPayload
    ) -> str:
        try:
            channel = await self.fetch_channel(channel_ref)
            message = await self.bounded(
                channel.send(
                    content=payload.mention,
                    embed=payload_embed(payload)
                )
            )
        except SEND_FAIL_EXCEPTIONS as e:
            raise DispatchFailure(
                f"Could not send to channel {channel_ref}"
            ) from e

        return str(message.id)

    async def send_direct(self, user_id: str, payload: ReminderPayload) -> bool:
        try:
            user = self.client.get_user(int(user_id))
            if user is None:
                user = await self.bounded(self.client.fetch_user(int(user_id)))
            await self.bounded(user.send(embed=payload_embed(payload)))
        except SEND_FAIL_EXCEPTIONS as e:
            logger.debug("Failed to DM user {}: {}", user_id, e)
            return False

        return True

    async def delete_artifact(self, channel_ref: str, artifact_id: str) -> bool:
        try:
            channel = await self.fetch_channel(channel_ref)
            message = await self.bounded(
                channel.fetch_message(int(artifact_id))
            )
            await self.bounded(message.delete())
        except SEND_FAIL_EXCEPTIONS as e:
            # Usually the message was already deleted by hand
            logger.debug(
                "Could not delete message {} in channel {}: {}",
                artifact_id,
                channel_ref,
                e
            )
            return False

        return True

    async def seed_reactions(
            self,
            channel_ref: str,
            artifact_id: str,
            emotes: List[str]
    ) -> bool:
        try:
            channel = await self.fetch_channel(channel_ref)
            message = channel.get_partial_message(int(artifact_id))
            for emote in emotes:
                await self.bounded(message.add_reaction(emote))
        except SEND_FAIL_EXCEPTIONS as e:
            logger.debug(
                "Could not add reactions to message {} in channel {}: {}",
                artifact_id,
                channel_ref,
                e
            )
            return False

        return True

    async def edit_artifact(
            self,
            channel_ref: str,
            artifact_id: str,
            payload: ReminderPayload
    ) -> bool:
        try:
            channel = await self.fetch_channel(channel_ref)
            message = await self.bounded(
                channel.fetch_message(int(artifact_id))
            )
            await self.bounded(message.edit(embed=payload_embed(payload)))
        except SEND_FAIL_EXCEPTIONS as e:
            logger.debug(
                "Could not edit message {} in channel {}: {}",
                artifact_id,
                channel_ref,
                e
            )
            return False

        return True
