"""
Event Store Module.

The event store is the sole owner of event record state. Records are
kept in memory for reads and written through to the database on every
change; a change only becomes visible in memory after it has been
committed, so anything read from the store has been durably saved.

All changes to a record go through the record's lock in the store's
KeyLock, which is what keeps concurrent RSVP reactions and reminder
dispatches for the same event from overwriting each other.
"""

from typing import Callable, Dict, List, Optional

from loguru import logger

from muster.database import MusterDatabase, StorageUnavailable
from muster.events.calendar.event_record import EventLoadError, EventRecord
from muster.utils.key_lock import KeyLock
from muster.utils.time_utils import utc_timestamp_now

__all__ = [
    "DuplicateEventId",
    "EventRecordStore",
    "StorageUnavailable"
]


class DuplicateEventId(Exception):
    """When an event is created with an ID that is already in use."""


class EventRecordStore:
    """Durable store of event records indexed by event ID."""

    __slots__ = ["database", "records", "locks", "clock"]

    def __init__(
            self,
            database: MusterDatabase,
            clock: Callable[[], int] = utc_timestamp_now
    ) -> None:
        """
        Initializer for the EventRecordStore class.

        Loads every stored record; records that fail to load are logged
        and left out.

        :param database: Database to persist records in
        :param clock: Returns the current UNIX timestamp
        :raises StorageUnavailable: Database could not be read
        """
        self.database = database
        self.clock = clock
        self.locks = KeyLock()
        self.records: Dict[str, EventRecord] = {}

        for event_id, record_dict in database.items():
            try:
                self.records[event_id] = EventRecord.load_from_dict(
                    record_dict
                )
            except EventLoadError:
                logger.warning(
                    "Failed to load stored event {}; skipping it",
                    event_id
                )

        logger.debug("Loaded {} event(s) from database", len(self.records))

    def serialized(self, event_id: str):
        """
        Hold the lock of an event record.

        The holding task may still call the store's mutating methods on
        the same event.

        :param event_id: Event ID
        :return: Async context manager
        """
        return self.locks.hold(event_id)

    def _commit(self, record: EventRecord) -> EventRecord:
        # Write first; memory only follows a successful write
        self.database.put(record.event_id, record.save_to_dict())
        self.records[record.event_id] = record
        return record.copy()

    async def create(self, event_id: str, attrs: dict) -> EventRecord:
        """
        Create a new event record.

        :param event_id: Event ID
        :param attrs: Creation attributes (title, category, start_at,
            channel_ref, guild_ref, created_by)
        :return: Created record
        :raises DuplicateEventId: Event ID already exists
        :raises EventLoadError: Invalid attributes
        :raises StorageUnavailable: Record could not be saved
        """
        event_id = str(event_id)
        async with self.locks.hold(event_id):
            if event_id in self.records:
                raise DuplicateEventId(event_id)

            record = EventRecord.new_record(event_id, attrs, self.clock())
            created = self._commit(record)

        logger.info(
            "Created {} event {} ({})",
            record.category,
            record.title,
            event_id
        )
        return created

    def get(self, event_id: str) -> Optional[EventRecord]:
        """
        Get a copy of an event record.

        :param event_id: Event ID
        :return: Record copy, or None if it does not exist
        """
        record = self.records.get(str(event_id))
        if record is None:
            return None

        return record.copy()

    def list_all(self) -> List[EventRecord]:
        """
        Get copies of every record.

        :return: List of records
        """
        return [record.copy() for record in self.records.values()]

    async def delete(self, event_id: str) -> bool:
        """
        Delete an event record.

        :param event_id: Event ID
        :return: Whether there was a record to delete
        :raises StorageUnavailable: Deletion could not be saved
        """
        event_id = str(event_id)
        async with self.locks.hold(event_id):
            if event_id not in self.records:
                return False

            self.database.remove(event_id)
            del self.records[event_id]

        logger.info("Deleted event {}", event_id)
        return True

    async def mutate(
            self,
            event_id: str,
            func: Callable[[EventRecord], None]
    ) -> Optional[EventRecord]:
        """
        Apply a change to an event record atomically and save it.

        The function receives a copy of the record to modify in place;
        if it raises, nothing is saved and the exception propagates.

        :param event_id: Event ID
        :param func: Function modifying the record
        :return: Copy of the updated record, or None if the event does
            not exist
        :raises StorageUnavailable: Change could not be saved
        """
        event_id = str(event_id)
        async with self.locks.hold(event_id):
            current = self.records.get(event_id)
            if current is None:
                return None

            working = current.copy()
            func(working)
            return self._commit(working)

    async def mark_reminder_sent(
            self,
            event_id: str,
            artifact_id: Optional[str] = None
    ) -> None:
        """
        Flag the automatic reminder of an event as sent.

        :param event_id: Event ID
        :param artifact_id: ID of the reminder message, if one was sent
        :raises StorageUnavailable: Change could not be saved
        """
        def mark(record: EventRecord) -> None:
            record.reminder_sent = True
            if artifact_id is not None:
                record.reminder_artifact_ids.append(str(artifact_id))

        await self.mutate(event_id, mark)

    async def append_reminder_artifact(
            self,
            event_id: str,
            artifact_id: str
    ) -> None:
        """
        Remember a reminder message for later cleanup without touching
        the automatic reminder flag.

        :param event_id: Event ID
        :param artifact_id: ID of the reminder message
        :raises StorageUnavailable: Change could not be saved
        """
        await self.mutate(
            event_id,
            lambda record: record.reminder_artifact_ids.append(
                str(artifact_id)
            )
        )

    def due_for_auto_reminder(
            self,
            now: int,
            lead_window: int
    ) -> List[EventRecord]:
        """
        Get events starting within the lead window that haven't had
        their automatic reminder yet.

        :param now: Current UNIX timestamp
        :param lead_window: Window length in seconds
        :return: List of due records
        """
        return [
            record.copy() for record in self.records.values()
            if not record.reminder_sent
            and 0 < record.start_at - now <= lead_window
        ]

    def expired(self, now: int) -> List[EventRecord]:
        """
        Get events that have already started.

        :param now: Current UNIX timestamp
        :return: List of expired records
        """
        return [
            record.copy() for record in self.records.values()
            if record.start_at < now
        ]

    def close(self) -> None:
        """Close the underlying database."""
        self.database.close()
