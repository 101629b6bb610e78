"""
Notification Dispatcher Module.

Sends the personal reminder DMs for an event. Attendees are read from
the registry at the time of sending, not from whatever record the
caller had, so members who joined or left since the scheduler picked
the event up are handled correctly.

Delivery is best effort: a member with closed DMs or a deleted account
must not stop everyone else from getting their reminder, and failed
DMs are not retried.
"""

from dataclasses import dataclass, field
from typing import List

from loguru import logger

from muster.events.calendar.rsvp_registry import RSVPRegistry
from muster.events.reminders.notifier import (
    KIND_REMINDER, Notifier, ReminderPayload
)


@dataclass
class DispatchReport:
    """
    Result of a personal dispatch.

    Parameters:
    - delivered: User IDs that were sent a DM
    - failed: User IDs whose DM could not be delivered
    """
    delivered: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class NotificationDispatcher:
    """Fans reminders out to event attendees."""

    __slots__ = ["registry", "notifier"]

    def __init__(self, registry: RSVPRegistry, notifier: Notifier) -> None:
        """
        Initializer for the NotificationDispatcher class.

        :param registry: RSVP registry to read attendees from
        :param notifier: Notifier to send DMs through
        """
        self.registry = registry
        self.notifier = notifier

    async def dispatch_personal(self, event_id: str) -> DispatchReport:
        """
        DM a reminder to every member with a positive disposition.

        :param event_id: Event ID
        :return: Report of delivered and failed DMs
        """
        report = DispatchReport()
        record = self.registry.store.get(event_id)
        dispositions = self.registry.dispositions_of(event_id)
        if record is None or dispositions is None:
            return report

        payload = ReminderPayload.from_record(
            record,
            kind=KIND_REMINDER,
            personal=True
        )
        recipients = [
            user_id
            for disposition in record.positive_dispositions
            for user_id in sorted(dispositions[disposition])
        ]

        for user_id in recipients:
            try:
                delivered = await self.notifier.send_direct(user_id, payload)
            except Exception as e:  # pylint: disable=broad-except
                logger.warning(
                    "Reminder DM to {} for event {} raised {}: {}",
                    user_id,
                    event_id,
                    type(e).__name__,
                    e
                )
                delivered = False

            if delivered:
                report.delivered.append(user_id)
            else:
                logger.warning(
                    "Failed to DM reminder to {} for event {}",
                    user_id,
                    event_id
                )
                report.failed.append(user_id)

        if report.delivered or report.failed:
            logger.info(
                "Personal reminders for {} sent to {} of {} attendee(s)",
                record.title,
                len(report.delivered),
                len(report.delivered) + len(report.failed)
            )

        return report
