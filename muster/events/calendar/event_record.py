"""
Event Record Module.

Contains the event record class that the event store persists. Every
scheduled guild activity is one record, indexed by the ID of the
message that announced it, and holding the RSVP state for that event
alongside its reminder bookkeeping.
"""

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from muster import settings

GUILDWARS = "guildwars"
EVENT_CATEGORIES = ("public", "guild", "both", GUILDWARS)

GVG_DISPOSITIONS = ("yes", "maybe", "no")
VFS_DISPOSITIONS = ("tank", "dps", "support")

# Dispositions that receive reminder DMs
POSITIVE_DISPOSITIONS = {
    GUILDWARS: ("yes", "maybe"),
    "default": VFS_DISPOSITIONS
}

# Dispositions that get a confirmation DM on registering and leaving
CONFIRMING_DISPOSITIONS = {
    GUILDWARS: ("yes",),
    "default": VFS_DISPOSITIONS
}

CATEGORY_LABELS = {
    "public": "Public VFS",
    "guild": "Guild VFS",
    "both": "Public + Guild VFS",
    GUILDWARS: "Guild Wars"
}

CATEGORY_COLOURS = {
    "public": 0x1abc9c,
    "guild": 0x3498db,
    "both": 0x9b59b6,
    GUILDWARS: 0xff0000
}

EVENT_LINK = "https://discord.com/channels/{}/{}/{}"

REQUIRED_ATTRS = (
    "title", "category", "start_at", "channel_ref", "guild_ref", "created_by"
)


class EventLoadError(Exception):
    """When an event record fails to load from a dictionary."""


def dispositions_for(category: str) -> tuple:
    """
    Get the valid disposition categories for an event category.

    :param category: Event category
    :return: Tuple of valid dispositions, in display order
    """
    if category == GUILDWARS:
        return GVG_DISPOSITIONS
    return VFS_DISPOSITIONS


def _family_lookup(table: dict, category: str) -> tuple:
    return table.get(category, table["default"])


@dataclass
class EventRecord:
    """
    A single scheduled event.

    Parameters:
    - event_id: ID of the announcement message, used as the record key
    - title: Event title
    - category: One of EVENT_CATEGORIES
    - start_at: Event start (UNIX, seconds accuracy)
    - channel_ref: ID of the channel the event was announced in
    - guild_ref: ID of the guild the event belongs to
    - created_by: ID of the user that created the event
    - created_at: Creation time (UNIX, seconds accuracy)
    - reminder_sent: Whether the automatic reminder went out
    - reminder_artifact_ids: IDs of reminder messages to clean up later
    - dispositions: User IDs indexed by disposition
    """
    event_id: str
    title: str
    category: str
    start_at: int
    channel_ref: str
    guild_ref: str
    created_by: str
    created_at: int
    reminder_sent: bool = False
    reminder_artifact_ids: List[str] = field(default_factory=list)
    dispositions: Dict[str, Set[str]] = field(default_factory=dict)

    @property
    def valid_dispositions(self) -> tuple:
        """Dispositions allowed for this event, in display order."""
        return dispositions_for(self.category)

    @property
    def positive_dispositions(self) -> tuple:
        """Dispositions whose users receive reminder DMs."""
        return _family_lookup(POSITIVE_DISPOSITIONS, self.category)

    @property
    def confirming_dispositions(self) -> tuple:
        """Dispositions whose users are sent registration DMs."""
        return _family_lookup(CONFIRMING_DISPOSITIONS, self.category)

    @property
    def label(self) -> str:
        """Display label of the event category."""
        return CATEGORY_LABELS.get(self.category, self.category)

    @property
    def colour(self) -> int:
        """Embed colour of the event category."""
        return CATEGORY_COLOURS.get(
            self.category,
            settings.embed_color_default_event
        )

    @property
    def link(self) -> str:
        """Link to the event announcement message."""
        return EVENT_LINK.format(
            self.guild_ref,
            self.channel_ref,
            self.event_id
        )

    def disposition_of(self, user_id: str) -> Optional[str]:
        """
        Find the disposition a user is registered under.

        :param user_id: User ID
        :return: Disposition, or None if the user is not registered
        """
        for disposition in self.valid_dispositions:
            if user_id in self.dispositions.get(disposition, set()):
                return disposition

        return None

    def snapshot(self) -> Dict[str, List[str]]:
        """
        Get a plain copy of the dispositions with sorted user lists.

        :return: User ID lists indexed by disposition
        """
        return {
            disposition: sorted(self.dispositions.get(disposition, set()))
            for disposition in self.valid_dispositions
        }

    def copy(self) -> "EventRecord":
        """
        Get a deep copy of this record.

        :return: Independent copy
        """
        return copy.deepcopy(self)

    @staticmethod
    def new_record(
            event_id: str,
            attrs: dict,
            created_at: int
    ) -> "EventRecord":
        """
        Create a fresh event record from creation attributes.

        :param event_id: Event ID
        :param attrs: Dictionary containing title, category, start_at,
            channel_ref, guild_ref and created_by
        :param created_at: Creation timestamp
        :return: New record with empty dispositions
        :raises EventLoadError: Missing or invalid attributes
        """
        missing = [key for key in REQUIRED_ATTRS if key not in attrs]
        if missing:
            raise EventLoadError(f"Missing event attributes: {missing}")

        return EventRecord.load_from_dict({
            **{key: attrs[key] for key in REQUIRED_ATTRS},
            "event_id": event_id,
            "created_at": created_at
        })

    @staticmethod
    def load_from_dict(config_dict: dict) -> "EventRecord":
        """
        Loads event record from stored parameters.

        Dispositions that don't belong to the event's category family
        are dropped, and missing ones start out empty.

        :param config_dict: Dictionary containing record parameters
        :return: Event record
        :raises EventLoadError: Invalid or missing parameters
        """
        try:
            category = str(config_dict["category"])
            if category not in EVENT_CATEGORIES:
                raise EventLoadError(f"Unknown event category {category}")

            stored = config_dict.get("dispositions", {})
            dispositions = {
                disposition: {str(u) for u in stored.get(disposition, [])}
                for disposition in dispositions_for(category)
            }

            return EventRecord(
                event_id=str(config_dict["event_id"]),
                title=str(config_dict["title"]),
                category=category,
                start_at=int(config_dict["start_at"]),
                channel_ref=str(config_dict["channel_ref"]),
                guild_ref=str(config_dict["guild_ref"]),
                created_by=str(config_dict["created_by"]),
                created_at=int(config_dict["created_at"]),
                reminder_sent=bool(config_dict.get("reminder_sent", False)),
                reminder_artifact_ids=[
                    str(a) for a in config_dict.get(
                        "reminder_artifact_ids", []
                    )
                ],
                dispositions=dispositions
            )

        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise EventLoadError from e

    def save_to_dict(self) -> dict:
        """
        Saves event record into a dictionary so that it may be loaded
        again.

        :return: Dictionary of record parameters
        """
        return {
            "event_id": self.event_id,
            "title": self.title,
            "category": self.category,
            "start_at": self.start_at,
            "channel_ref": self.channel_ref,
            "guild_ref": self.guild_ref,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "reminder_sent": self.reminder_sent,
            "reminder_artifact_ids": list(self.reminder_artifact_ids),
            "dispositions": self.snapshot()
        }
