"""
Live Projection Module.

Every event announcement shows the current attendee lists and is edited
whenever someone reacts. The projection of an event is the bookkeeping
for that message: where it is, whether it is still being kept up to
date, and what was last rendered into it.

Projections are rebuilt from the event store when the bot starts, so
announcements keep updating across restarts. Edits go through the
event's lock in the store, the same one RSVP changes use, so two
reactions arriving together can't render out of order.

If editing an announcement ever fails, that announcement stops being
updated. The RSVP state in the store is unaffected and stays correct;
only the message goes stale.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from loguru import logger

from muster.events.calendar.event_record import EventRecord
from muster.events.calendar.event_store import EventRecordStore
from muster.events.reminders.notifier import (
    KIND_PROJECTION, Notifier, ReminderPayload
)


@dataclass
class LiveProjection:
    """
    Live announcement of a single event.

    Parameters:
    - event_id: Event ID, also the announcement message ID
    - channel_ref: Channel the announcement is in
    - active: Whether the announcement is still being updated
    - last_rendered: Attendee lists currently shown in the message
    """
    event_id: str
    channel_ref: str
    active: bool = True
    last_rendered: Optional[Dict[str, List[str]]] = None


class ProjectionRegistry:
    """Live projections indexed by event ID."""

    __slots__ = ["store", "notifier", "projections"]

    def __init__(self, store: EventRecordStore, notifier: Notifier) -> None:
        """
        Initializer for the ProjectionRegistry class.

        :param store: Event store
        :param notifier: Notifier used to edit announcements
        """
        self.store = store
        self.notifier = notifier
        self.projections: Dict[str, LiveProjection] = {}

    def restore(self) -> int:
        """
        Attach a projection to every stored event.

        :return: Number of projections attached
        """
        for record in self.store.list_all():
            self.attach(record)

        return len(self.projections)

    def attach(self, record: EventRecord) -> LiveProjection:
        """
        Start tracking the announcement of an event.

        :param record: Event record
        :return: Projection of the event
        """
        projection = self.projections.get(record.event_id)
        if projection is None:
            projection = LiveProjection(
                event_id=record.event_id,
                channel_ref=record.channel_ref
            )
            self.projections[record.event_id] = projection

        return projection

    def detach(self, event_id: str) -> Optional[LiveProjection]:
        """
        Stop tracking the announcement of an event.

        :param event_id: Event ID
        :return: Removed projection, if there was one
        """
        return self.projections.pop(str(event_id), None)

    def get(self, event_id: str) -> Optional[LiveProjection]:
        """
        Get the projection of an event.

        :param event_id: Event ID
        :return: Projection, or None if the event is not tracked
        """
        return self.projections.get(str(event_id))

    async def refresh(self, event_id: str) -> bool:
        """
        Bring the announcement of an event up to date.

        :param event_id: Event ID
        :return: Whether the announcement now shows the current state
        """
        event_id = str(event_id)
        projection = self.projections.get(event_id)
        if projection is None or not projection.active:
            return False

        async with self.store.serialized(event_id):
            record = self.store.get(event_id)
            if record is None:
                self.detach(event_id)
                return False

            snapshot = record.snapshot()
            if snapshot == projection.last_rendered:
                return True

            payload = ReminderPayload.from_record(
                record,
                kind=KIND_PROJECTION,
                include_dispositions=True
            )
            edited = await self.notifier.edit_artifact(
                projection.channel_ref,
                event_id,
                payload
            )

            if not edited:
                projection.active = False
                logger.warning(
                    "Failed to update announcement of event {}; "
                    "no longer updating it",
                    event_id
                )
                return False

            projection.last_rendered = snapshot

        return True
