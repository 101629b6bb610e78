"""
Reminder Scheduler Module.

Runs two timers: a short poll that sends the automatic reminder for
every event about to start, and a daily sweep that removes events that
have already started along with their reminder messages.

Automatic reminders are sent while holding the event's lock in the
store, from re-reading the record up to flagging the reminder as sent.
This keeps a reaction landing mid-dispatch from being lost and makes it
impossible for the reminder to go out twice, at the cost of holding the
lock across the Discord calls.

If the broadcast fails the event is not flagged and the next poll tries
again. The one exception is a channel that no longer exists: the event
is flagged without sending anything, since retrying would never work.

Manual reminders ignore the automatic reminder flag entirely and can be
sent as often as staff like.
"""

import asyncio
from typing import Any, Callable, Optional

from discord.ext import tasks
from loguru import logger

from muster import settings
from muster.database import StorageUnavailable
from muster.events.calendar.event_record import EventRecord
from muster.events.calendar.event_store import EventRecordStore
from muster.events.calendar.rsvp_registry import RSVPRegistry
from muster.events.reminders.dispatcher import NotificationDispatcher
from muster.events.reminders.notifier import (
    DispatchFailure, KIND_REMINDER, Notifier, ReminderPayload,
    RoleMentionLookup
)
from muster.utils.time_utils import utc_timestamp_now

POLL_INTERVAL_SECONDS = settings.reminder_poll_interval_seconds
SWEEP_INTERVAL_HOURS = settings.event_sweep_interval_hours
LEAD_WINDOW_SECONDS = settings.reminder_lead_window_seconds


class ReminderScheduler:
    """Automatic and manual event reminders."""

    __slots__ = [
        "store",
        "registry",
        "dispatcher",
        "notifier",
        "role_lookup",
        "poll_interval",
        "sweep_interval",
        "lead_window",
        "clock",
        "on_delete",
        "poll_loop",
        "sweep_loop",
        "tick_lock"
    ]

    def __init__(
            self,
            store: EventRecordStore,
            registry: RSVPRegistry,
            dispatcher: NotificationDispatcher,
            notifier: Notifier,
            role_lookup: RoleMentionLookup,
            poll_interval: float = POLL_INTERVAL_SECONDS,
            sweep_interval: float = SWEEP_INTERVAL_HOURS,
            lead_window: int = LEAD_WINDOW_SECONDS,
            clock: Callable[[], int] = utc_timestamp_now,
            on_delete: Optional[Callable[[str], Any]] = None
    ) -> None:
        """
        Initializer for the ReminderScheduler class.

        :param store: Event store
        :param registry: RSVP registry
        :param dispatcher: Dispatcher for personal reminders
        :param notifier: Notifier for channel messages
        :param role_lookup: Role mentions per event category
        :param poll_interval: Seconds between reminder checks
        :param sweep_interval: Hours between expired event sweeps
        :param lead_window: Seconds before event start at which the
            automatic reminder is sent
        :param clock: Returns the current UNIX timestamp
        :param on_delete: Called with the event ID of every event the
            scheduler deletes
        """
        self.store = store
        self.registry = registry
        self.dispatcher = dispatcher
        self.notifier = notifier
        self.role_lookup = role_lookup
        self.poll_interval = poll_interval
        self.sweep_interval = sweep_interval
        self.lead_window = lead_window
        self.clock = clock
        self.on_delete = on_delete
        self.poll_loop: Optional[tasks.Loop] = None
        self.sweep_loop: Optional[tasks.Loop] = None

        # Held while a poll or sweep is running
        self.tick_lock = asyncio.Lock()

    def start(self) -> None:
        """
        Start the poll and sweep timers.

        Both run once immediately, so reminders missed while the bot
        was offline go out right away.
        """
        if self.poll_loop is None:
            self.poll_loop = tasks.loop(seconds=self.poll_interval)(
                self.poll_tick
            )
            self.sweep_loop = tasks.loop(hours=self.sweep_interval)(
                self.sweep_tick
            )

        if not self.poll_loop.is_running():
            self.poll_loop.start()
        if not self.sweep_loop.is_running():
            self.sweep_loop.start()

        logger.info("Reminder scheduler started")

    def stop(self) -> None:
        """
        Stop the timers.

        The current iteration is allowed to finish, so a reminder that
        is being sent is never cut off halfway.
        """
        for loop in (self.poll_loop, self.sweep_loop):
            if loop is not None and loop.is_running():
                loop.stop()

        logger.info("Reminder scheduler stopped")

    async def shutdown(self) -> None:
        """Stop the timers and wait for a running poll or sweep."""
        self.stop()
        async with self.tick_lock:
            pass

    async def poll_tick(self, now: Optional[int] = None) -> int:
        """
        Send automatic reminders for every due event.

        :param now: Current UNIX timestamp, defaults to the clock
        :return: Number of reminders sent
        """
        if now is None:
            now = self.clock()

        sent = 0
        async with self.tick_lock:
            due = self.store.due_for_auto_reminder(now, self.lead_window)
            for record in due:
                try:
                    if await self.dispatch_automatic(record.event_id):
                        sent += 1
                except (DispatchFailure, StorageUnavailable) as e:
                    logger.error(
                        "Error sending reminder for event {}: {}",
                        record.event_id,
                        e
                    )
                except Exception:  # pylint: disable=broad-except
                    # Keep the batch and the poll loop going
                    logger.exception(
                        "Unexpected error sending reminder for event {}",
                        record.event_id
                    )

        return sent

    async def dispatch_automatic(self, event_id: str) -> bool:
        """
        Send the automatic reminder of an event.

        :param event_id: Event ID
        :return: Whether a reminder was broadcast
        :raises StorageUnavailable: Reminder flag could not be saved
        """
        async with self.store.serialized(event_id):
            record = self.store.get(event_id)
            if record is None or record.reminder_sent:
                return False

            try:
                reachable = await self.notifier.resolve_destination(
                    record.channel_ref
                )
            except DispatchFailure as e:
                logger.warning(
                    "Could not check channel {} for event {}: {}",
                    record.channel_ref,
                    event_id,
                    e
                )
                return False

            if not reachable:
                # Mark as sent so that we don't keep retrying on a
                # channel that is gone
                logger.warning(
                    "Channel {} of event {} is gone; skipping reminder",
                    record.channel_ref,
                    event_id
                )
                await self.store.mark_reminder_sent(event_id)
                return False

            mention = self.role_lookup.for_category(record.category)
            payload = ReminderPayload.from_record(
                record,
                kind=KIND_REMINDER,
                mention=mention
            )

            try:
                artifact_id = await self.notifier.send_broadcast(
                    record.channel_ref,
                    payload
                )
            except DispatchFailure as e:
                logger.error(
                    "Failed to send reminder for event {}: {}",
                    event_id,
                    e
                )
                return False

            await self.dispatcher.dispatch_personal(event_id)
            await self.store.mark_reminder_sent(event_id, artifact_id)

        logger.info(
            "Reminder sent for event {}{}",
            record.title,
            " with role mention" if mention else ""
        )
        return True

    async def send_manual(
            self,
            channel_ref: str,
            event_id: str,
            include_dispositions: bool = False,
            notify_attendees: bool = True
    ) -> bool:
        """
        Send a reminder on request, regardless of whether the automatic
        reminder has gone out.

        :param channel_ref: Channel to post the reminder in
        :param event_id: Event ID
        :param include_dispositions: Include the current attendee lists
        :param notify_attendees: Also DM every attendee
        :return: Whether the reminder was sent
        """
        record = self.store.get(event_id)
        if record is None:
            logger.warning("Manual reminder for unknown event {}", event_id)
            return False

        try:
            payload = ReminderPayload.from_record(
                record,
                kind=KIND_REMINDER,
                mention=self.role_lookup.for_category(record.category),
                include_dispositions=include_dispositions
            )
            artifact_id = await self.notifier.send_broadcast(
                channel_ref,
                payload
            )
            if notify_attendees:
                await self.dispatcher.dispatch_personal(event_id)
            await self.store.append_reminder_artifact(event_id, artifact_id)
        except (DispatchFailure, StorageUnavailable) as e:
            logger.error(
                "Error sending manual reminder for event {}: {}",
                event_id,
                e
            )
            return False
        except Exception:  # pylint: disable=broad-except
            logger.exception(
                "Unexpected error sending manual reminder for event {}",
                event_id
            )
            return False

        logger.info("Manual reminder sent for event {}", record.title)
        return True

    async def purge(
            self,
            event_id: str,
            include_announcement: bool = False
    ) -> bool:
        """
        Delete an event along with its reminder messages.

        Message cleanup is best effort and never keeps the event from
        being deleted.

        :param event_id: Event ID
        :param include_announcement: Also delete the event announcement
        :return: Whether the event existed
        :raises StorageUnavailable: Deletion could not be saved
        """
        record = self.store.get(event_id)
        if record is None:
            return False

        await self.cleanup_artifacts(record, include_announcement)
        return await self.delete_record(event_id)

    async def delete_record(self, event_id: str) -> bool:
        """
        Delete an event record and tell the deletion hook about it.

        :param event_id: Event ID
        :return: Whether the event existed
        :raises StorageUnavailable: Deletion could not be saved
        """
        deleted = await self.store.delete(event_id)
        if deleted and self.on_delete is not None:
            self.on_delete(event_id)

        return deleted

    async def cleanup_artifacts(
            self,
            record: EventRecord,
            include_announcement: bool = False
    ) -> int:
        """
        Try to delete every message sent for an event.

        :param record: Event record
        :param include_announcement: Also delete the event announcement
        :return: Number of messages deleted
        """
        artifact_ids = list(record.reminder_artifact_ids)
        if include_announcement:
            artifact_ids.insert(0, record.event_id)

        deleted = 0
        for artifact_id in artifact_ids:
            try:
                if await self.notifier.delete_artifact(
                        record.channel_ref,
                        artifact_id
                ):
                    deleted += 1
            except Exception as e:  # pylint: disable=broad-except
                logger.debug(
                    "Could not delete message {} of event {}: {}",
                    artifact_id,
                    record.event_id,
                    e
                )

        return deleted

    async def sweep_tick(self, now: Optional[int] = None) -> int:
        """
        Remove every event that has already started.

        :param now: Current UNIX timestamp, defaults to the clock
        :return: Number of events removed
        """
        if now is None:
            now = self.clock()

        removed = 0
        async with self.tick_lock:
            for record in self.store.expired(now):
                await self.cleanup_artifacts(record)
                try:
                    if await self.delete_record(record.event_id):
                        removed += 1
                except StorageUnavailable as e:
                    logger.error(
                        "Failed to remove expired event {}: {}",
                        record.event_id,
                        e
                    )
                except Exception:  # pylint: disable=broad-except
                    logger.exception(
                        "Unexpected error removing expired event {}",
                        record.event_id
                    )

        if removed:
            logger.info("Removed {} expired event(s)", removed)

        return removed
