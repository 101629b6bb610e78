"""
Notifier Module.

Interfaces for everything the reminder system needs from the chat
platform: sending and cleaning up channel messages, direct messages to
members, and looking up which role to mention for an event category.
The Discord implementation lives in discord_notifier; tests use fakes.
"""

import abc
from dataclasses import dataclass
from typing import Dict, List, Optional

from muster.events.calendar.event_record import EventRecord

KIND_REMINDER = "reminder"
KIND_REGISTERED = "registered"
KIND_UNREGISTERED = "unregistered"
KIND_PROJECTION = "projection"


class DispatchFailure(Exception):
    """When a message could not be delivered to the chat platform."""


@dataclass
class ReminderPayload:
    """
    Everything needed to render one notification about an event.

    Parameters:
    - event_id: Event ID
    - title: Event title
    - category: Event category
    - label: Display label of the category
    - colour: Embed colour
    - start_at: Event start (UNIX, seconds accuracy)
    - link: Link to the event announcement
    - kind: One of the KIND_* constants
    - mention: Role mention to put in front of the message
    - dispositions: Attendee lists to include, if any
    - personal: Whether the payload is meant for a DM
    """
    event_id: str
    title: str
    category: str
    label: str
    colour: int
    start_at: int
    link: str
    kind: str = KIND_REMINDER
    mention: Optional[str] = None
    dispositions: Optional[Dict[str, List[str]]] = None
    personal: bool = False

    @staticmethod
    def from_record(
            record: EventRecord,
            kind: str = KIND_REMINDER,
            mention: Optional[str] = None,
            include_dispositions: bool = False,
            personal: bool = False
    ) -> "ReminderPayload":
        """
        Build a payload for an event record.

        :param record: Event record
        :param kind: Notification kind
        :param mention: Role mention
        :param include_dispositions: Whether to include attendee lists
        :param personal: Whether the payload is meant for a DM
        :return: Payload
        """
        return ReminderPayload(
            event_id=record.event_id,
            title=record.title,
            category=record.category,
            label=record.label,
            colour=record.colour,
            start_at=record.start_at,
            link=record.link,
            kind=kind,
            mention=mention,
            dispositions=record.snapshot() if include_dispositions else None,
            personal=personal
        )


class Notifier(abc.ABC):
    """Chat platform operations used by the reminder system."""

    @abc.abstractmethod
    async def resolve_destination(self, channel_ref: str) -> bool:
        """
        Check that a channel can still be posted in.

        :param channel_ref: Channel ID
        :return: False if the channel is permanently gone
        :raises DispatchFailure: Channel could not be checked right now
        """

    @abc.abstractmethod
    async def send_broadcast(
            self,
            channel_ref: str,
            payload: ReminderPayload
    ) -> str:
        """
        Post a message to a channel.

        :param channel_ref: Channel ID
        :param payload: Message payload
        :return: ID of the sent message
        :raises DispatchFailure: Message could not be sent
        """

    @abc.abstractmethod
    async def send_direct(self, user_id: str, payload: ReminderPayload) -> bool:
        """
        Send a DM to a member.

        :param user_id: User ID
        :param payload: Message payload
        :return: Whether the DM was delivered
        """

    @abc.abstractmethod
    async def delete_artifact(self, channel_ref: str, artifact_id: str) -> bool:
        """
        Delete a previously sent message.

        :param channel_ref: Channel ID
        :param artifact_id: Message ID
        :return: Whether the message was deleted
        """

    @abc.abstractmethod
    async def seed_reactions(
            self,
            channel_ref: str,
            artifact_id: str,
            emotes: List[str]
    ) -> bool:
        """
        Add reactions to a message, in order, so members can click them.

        :param channel_ref: Channel ID
        :param artifact_id: Message ID
        :param emotes: Unicode emotes to react with
        :return: Whether every reaction was added
        """

    @abc.abstractmethod
    async def edit_artifact(
            self,
            channel_ref: str,
            artifact_id: str,
            payload: ReminderPayload
    ) -> bool:
        """
        Replace the contents of a previously sent message.

        :param channel_ref: Channel ID
        :param artifact_id: Message ID
        :param payload: New message payload
        :return: Whether the message was edited
        """


class RoleMentionLookup(abc.ABC):
    """Role mentions configured per event category."""

    @abc.abstractmethod
    def for_category(self, category: str) -> Optional[str]:
        """
        Get the role mention for an event category.

        :param category: Event category
        :return: Mention string, or None if no role is configured
        """
