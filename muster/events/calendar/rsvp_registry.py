"""
RSVP Registry Module.

Tracks which disposition each member holds for an event. A member can
only ever hold one disposition per event; picking a new one moves them
out of whatever they held before.

Reaction add and remove notifications arrive in no particular order,
and switching from one reaction to another usually produces an add for
the new reaction followed by a remove for the old one. Clearing reports
whether the member is still registered under something else, so that
the caller doesn't tell someone they left an event they only switched
roles in.
"""

from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Set, Tuple

from loguru import logger

from muster.events.calendar.event_record import EventRecord
from muster.events.calendar.event_store import EventRecordStore


class InvalidDisposition(ValueError):
    """When a disposition does not belong to the event's category."""


class ClearStatus(Enum):
    """Result of clearing a disposition."""

    FULLY_CLEARED = "fully_cleared"
    STILL_REGISTERED = "still_registered"
    NO_OP = "no_op"


class ClearOutcome(NamedTuple):
    """
    Outcome of clear_disposition.

    Parameters:
    - status: What happened to the member's registration
    - category: Disposition the member is still registered as, only
      set when status is STILL_REGISTERED
    """
    status: ClearStatus
    category: Optional[str] = None


class RSVPRegistry:
    """Disposition tracking for event records."""

    __slots__ = ["store"]

    def __init__(self, store: EventRecordStore) -> None:
        """
        Initializer for the RSVPRegistry class.

        :param store: Event store owning the records
        """
        self.store = store

    async def set_disposition(
            self,
            event_id: str,
            user_id: str,
            category: str
    ) -> bool:
        """
        Register a member under a disposition, removing them from every
        other disposition of the event.

        :param event_id: Event ID
        :param user_id: Member user ID
        :param category: Disposition to register under
        :return: False if the event does not exist
        :raises InvalidDisposition: Disposition not valid for the event
        :raises StorageUnavailable: Change could not be saved
        """
        user_id = str(user_id)

        def assign(record: EventRecord) -> None:
            if category not in record.valid_dispositions:
                raise InvalidDisposition(
                    f"{category} is not a disposition of "
                    f"{record.category} events"
                )

            for disposition in record.valid_dispositions:
                record.dispositions.setdefault(disposition, set()).discard(
                    user_id
                )
            record.dispositions[category].add(user_id)

        record = await self.store.mutate(event_id, assign)
        if record is None:
            logger.debug(
                "Ignored disposition {} from {} for unknown event {}",
                category,
                user_id,
                event_id
            )
            return False

        logger.trace("User {} is now {} for {}", user_id, category, event_id)
        return True

    async def clear_disposition(
            self,
            event_id: str,
            user_id: str,
            category: str
    ) -> ClearOutcome:
        """
        Remove a member from a single disposition.

        :param event_id: Event ID
        :param user_id: Member user ID
        :param category: Disposition to remove the member from
        :return: Whether the member is fully cleared, still registered
            under another disposition, or nothing happened
        :raises StorageUnavailable: Change could not be saved
        """
        user_id = str(user_id)
        removed = []

        def unassign(record: EventRecord) -> None:
            users = record.dispositions.get(category)
            if users is not None and user_id in users:
                users.discard(user_id)
                removed.append(category)

        record = await self.store.mutate(event_id, unassign)
        if record is None:
            return ClearOutcome(ClearStatus.NO_OP)

        remaining = record.disposition_of(user_id)
        if remaining is not None:
            return ClearOutcome(ClearStatus.STILL_REGISTERED, remaining)

        if removed:
            logger.trace("User {} left event {}", user_id, event_id)
            return ClearOutcome(ClearStatus.FULLY_CLEARED)

        return ClearOutcome(ClearStatus.NO_OP)

    def dispositions_of(self, event_id: str) -> Optional[Dict[str, Set[str]]]:
        """
        Get the current dispositions of an event.

        :param event_id: Event ID
        :return: Sets of user IDs indexed by disposition, or None if the
            event does not exist
        """
        record = self.store.get(event_id)
        if record is None:
            return None

        return {
            disposition: set(record.dispositions.get(disposition, set()))
            for disposition in record.valid_dispositions
        }

    def events_for_user(
            self,
            user_id: str,
            now: int
    ) -> List[Tuple[EventRecord, str]]:
        """
        Get every upcoming event a member is attending.

        Only positive dispositions count, so guild wars events the
        member answered "no" to are left out.

        :param user_id: Member user ID
        :param now: Current UNIX timestamp
        :return: List of records and the member's disposition, ordered
            by start time
        """
        user_id = str(user_id)
        attending = []
        for record in self.store.list_all():
            if record.start_at <= now:
                continue

            disposition = record.disposition_of(user_id)
            if disposition in record.positive_dispositions:
                attending.append((record, disposition))

        attending.sort(key=lambda pair: pair[0].start_at)
        return attending
