"""Events Cog Module."""
from typing import Optional

from discord import (
    RawBulkMessageDeleteEvent, RawMessageDeleteEvent, RawReactionActionEvent
)
from discord.ext import commands
from loguru import logger

from muster.database import StorageUnavailable
from muster.events.calendar.event_record import EventRecord
from muster.events.calendar.event_store import EventRecordStore
from muster.events.calendar.live_projection import ProjectionRegistry
from muster.events.calendar.rsvp_registry import ClearStatus, RSVPRegistry
from muster.events.events_emotes import disposition_for_emote, emotes_for
from muster.events.reminders.dispatcher import NotificationDispatcher
from muster.events.reminders.notifier import (
    KIND_REGISTERED, KIND_UNREGISTERED, Notifier, ReminderPayload,
    RoleMentionLookup
)
from muster.events.reminders.scheduler import ReminderScheduler
from muster.utils.discord_utils import filter_self_react
from muster.utils.key_lock import KeyLock


class EventsCog(commands.Cog, name="events"):
    """
    Guild Events.

    Tracks member registrations for guild events through reactions on
    the event announcements, keeps the announcements' attendee lists up
    to date, and sends automatic and manual reminders. Event records are
    indexed by the message ID of their announcement.
    """

    __slots__ = [
        "bot",
        "store",
        "notifier",
        "registry",
        "dispatcher",
        "scheduler",
        "projections",
        "dm_lock"
    ]

    # Using forward references to avoid cyclic imports
    # noinspection PyUnresolvedReferences
    def __init__(
            self,
            bot: "MusterBot",
            store: EventRecordStore,
            notifier: Notifier,
            role_lookup: RoleMentionLookup
    ) -> None:
        """
        Initializer for the EventsCog class.

        :param bot: Muster bot object
        :param store: Event store
        :param notifier: Notifier for channel messages and DMs
        :param role_lookup: Role mentions per event category
        """
        self.bot = bot
        self.store = store
        self.notifier = notifier
        self.registry = RSVPRegistry(store)
        self.dispatcher = NotificationDispatcher(self.registry, notifier)
        self.projections = ProjectionRegistry(store, notifier)
        self.scheduler = ReminderScheduler(
            store,
            self.registry,
            self.dispatcher,
            notifier,
            role_lookup,
            on_delete=self.projections.detach
        )

        # Queues DMs per member so confirmations arrive in order
        self.dm_lock = KeyLock()

    def start(self) -> None:
        """Restore live announcements and start the reminder timers."""
        restored = self.projections.restore()
        logger.info("Tracking {} event announcement(s)", restored)
        self.scheduler.start()

    def cog_unload(self) -> None:
        """Stop the reminder timers when the cog is removed."""
        self.scheduler.stop()

    async def cog_save_all(self) -> None:
        """Stop the timers and close the event database."""
        await self.scheduler.shutdown()
        self.store.close()

    async def create_event(self, event_id: str, attrs: dict) -> EventRecord:
        """
        Create an event for a freshly sent announcement and add the
        registration reactions to it.

        :param event_id: Announcement message ID
        :param attrs: Event creation attributes
        :return: Created record
        :raises DuplicateEventId: Event ID already exists
        :raises EventLoadError: Invalid attributes
        :raises StorageUnavailable: Record could not be saved
        """
        record = await self.store.create(event_id, attrs)
        self.projections.attach(record)

        seeded = await self.notifier.seed_reactions(
            record.channel_ref,
            record.event_id,
            list(emotes_for(record.category))
        )
        if not seeded:
            logger.warning(
                "Failed to add registration reactions to event {}",
                record.event_id
            )

        return record

    async def delete_event(self, event_id: str) -> bool:
        """
        Delete an event together with its reminder messages.

        :param event_id: Event ID
        :return: Whether the event existed
        """
        self.projections.detach(event_id)
        try:
            return await self.scheduler.purge(event_id)
        except StorageUnavailable as e:
            logger.error("Failed to delete event {}: {}", event_id, e)
            return False

    async def send_confirmation(
            self,
            record: EventRecord,
            user_id: str,
            kind: str
    ) -> bool:
        """
        DM a member that they joined or left an event.

        :param record: Event record
        :param user_id: Member user ID
        :param kind: KIND_REGISTERED or KIND_UNREGISTERED
        :return: Whether the DM was delivered
        """
        payload = ReminderPayload.from_record(record, kind=kind, personal=True)
        delivered = await self.dm_lock.queue_call(
            self.notifier.send_direct,
            user_id,
            user_id,
            payload
        )
        if not delivered:
            logger.warning(
                "Failed to send {} DM to {} for event {}",
                kind,
                user_id,
                record.event_id
            )

        return delivered

    def reaction_disposition(
            self,
            reaction_payload: RawReactionActionEvent
    ) -> Optional[tuple]:
        """
        Work out which event and disposition a reaction is about.

        :param reaction_payload: Raw reaction payload
        :return: Tuple of event record and disposition, or None if the
            reaction isn't an RSVP
        """
        record = self.store.get(str(reaction_payload.message_id))
        if record is None:
            return None

        disposition = disposition_for_emote(
            record.category,
            reaction_payload.emoji.name or ""
        )
        if disposition is None:
            return None

        return record, disposition

    @commands.Cog.listener()
    @filter_self_react
    async def on_raw_reaction_add(
            self,
            reaction_payload: RawReactionActionEvent
    ) -> None:
        """
        Listener for adding reactions.

        Registers the member under the reaction's disposition, moving
        them out of any other disposition of the event.

        :param reaction_payload: Raw reaction payload
        """
        found = self.reaction_disposition(reaction_payload)
        if found is None:
            return

        record, disposition = found
        user_id = str(reaction_payload.user_id)
        try:
            registered = await self.registry.set_disposition(
                record.event_id,
                user_id,
                disposition
            )
        except StorageUnavailable as e:
            logger.error(
                "Failed to register {} for event {}: {}",
                user_id,
                record.event_id,
                e
            )
            return

        if not registered:
            return

        if disposition in record.confirming_dispositions:
            await self.send_confirmation(record, user_id, KIND_REGISTERED)

        await self.projections.refresh(record.event_id)

    @commands.Cog.listener()
    @filter_self_react
    async def on_raw_reaction_remove(
            self,
            reaction_payload: RawReactionActionEvent
    ) -> None:
        """
        Listener for removing reactions.

        Members that switch reactions are still registered under their
        new disposition when the removal arrives, so they are only told
        they left the event if nothing else is holding them.

        :param reaction_payload: Raw reaction payload
        """
        found = self.reaction_disposition(reaction_payload)
        if found is None:
            return

        record, disposition = found
        user_id = str(reaction_payload.user_id)
        try:
            outcome = await self.registry.clear_disposition(
                record.event_id,
                user_id,
                disposition
            )
        except StorageUnavailable as e:
            logger.error(
                "Failed to unregister {} from event {}: {}",
                user_id,
                record.event_id,
                e
            )
            return

        if (
                outcome.status is ClearStatus.FULLY_CLEARED
                and disposition in record.confirming_dispositions
        ):
            await self.send_confirmation(record, user_id, KIND_UNREGISTERED)

        if outcome.status is not ClearStatus.NO_OP:
            await self.projections.refresh(record.event_id)

    @commands.Cog.listener()
    async def on_raw_message_delete(
            self,
            raw_message_delete: RawMessageDeleteEvent
    ) -> None:
        """
        Listener for messages being deleted.

        Deleting an event announcement deletes the event.

        :param raw_message_delete: Raw deletion event
        """
        event_id = str(raw_message_delete.message_id)
        if self.store.get(event_id) is not None:
            await self.delete_event(event_id)

    @commands.Cog.listener()
    async def on_raw_bulk_message_delete(
            self,
            raw_bulk_message_delete: RawBulkMessageDeleteEvent
    ) -> None:
        """
        Listener for message bulk deletions.

        :param raw_bulk_message_delete: Raw bulk deletion event
        """
        for message_id in raw_bulk_message_delete.message_ids:
            event_id = str(message_id)
            if self.store.get(event_id) is not None:
                await self.delete_event(event_id)
