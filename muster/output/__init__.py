"""
Output tools module.

Everything that the bot sends through discord is managed by this module;
this includes looking up display strings and turning reminder payloads
into Discord embeds.
"""

from typing import Optional

from discord import Colour, Embed

from muster import settings
from muster.events.reminders.notifier import (
    KIND_PROJECTION, KIND_REGISTERED, KIND_UNREGISTERED, ReminderPayload
)
from muster.output import eng_strings
from muster.utils.time_utils import (
    format_eta, to_utc_datetime, utc_timestamp_now
)

DEFAULT_LANG = "eng"

# Turned into a dict at runtime, so that we don't have to use getattr.
ENG_STRINGS = {
    name: value for name, value in vars(eng_strings).items()
    if not name.startswith("__")
}


def disp_str(str_name: str, lang: str = DEFAULT_LANG) -> str:
    """
    Retrieves display string based on string name.

    :param str_name: Name of string
    :param lang: Language of string
    :return: Pre-formatted string
    """
    if lang == "eng" and str_name in ENG_STRINGS:
        return ENG_STRINGS[str_name].replace(
            "%PREFIX%", settings.command_prefix
        )

    return ""


def add_disposition_fields(embed: Embed, payload: ReminderPayload) -> None:
    """
    Add one inline field per disposition listing its members.

    :param embed: Embed to add fields to
    :param payload: Payload carrying the attendee lists
    """
    for disposition, users in (payload.dispositions or {}).items():
        if not users and payload.kind != KIND_PROJECTION:
            continue

        value = "\n".join(
            disp_str("events_field_entry").format(user) for user in users
        )
        embed.add_field(
            name=disp_str("events_field_title").format(
                disp_str(f"events_disposition_{disposition}"),
                len(users)
            ),
            value=value or disp_str("events_field_empty"),
            inline=True
        )


def payload_embed(
        payload: ReminderPayload,
        now: Optional[int] = None
) -> Embed:
    """
    Build the Discord embed for a reminder payload.

    :param payload: Reminder payload
    :param now: Current UNIX timestamp, used for the time left footer
    :return: Discord embed
    """
    if payload.kind == KIND_REGISTERED:
        prefix, colour = "events_registered", settings.embed_color_success
    elif payload.kind == KIND_UNREGISTERED:
        prefix, colour = "events_unregistered", settings.embed_color_severe
    elif payload.kind == KIND_PROJECTION:
        prefix, colour = "events_projection", payload.colour
    else:
        prefix, colour = "events_reminder", payload.colour

    embed = Embed(
        title=disp_str(f"{prefix}_title").format(payload.label, payload.title),
        url=payload.link,
        description=disp_str(f"{prefix}_desc").format(payload.start_at),
        colour=Colour(colour),
        timestamp=to_utc_datetime(payload.start_at)
    )

    add_disposition_fields(embed, payload)

    footer = disp_str(f"{prefix}_footer")
    if payload.kind not in (KIND_REGISTERED, KIND_UNREGISTERED):
        if payload.personal:
            footer = disp_str("events_reminder_personal_footer")
        else:
            if now is None:
                now = utc_timestamp_now()
            footer = disp_str("events_reminder_eta_footer").format(
                format_eta(payload.start_at - now)
            )

    if footer:
        embed.set_footer(text=footer)

    return embed
