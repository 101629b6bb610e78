"""
Event emotes module.

Reactions members use to register for events, per event family.
Discord reports some of these with a trailing variation selector and
some without, so emotes are compared with it stripped. The full forms
are kept for adding the reactions to announcements.
"""

from typing import Dict, Optional

import emoji

from muster.events.calendar.event_record import GUILDWARS

VARIATION_SELECTOR = "\ufe0f"


def _emote(alias: str) -> str:
    return emoji.emojize(alias, language="alias")


def _bare(emote: str) -> str:
    return emote.replace(VARIATION_SELECTOR, "")


YES_EMOTE = _emote(":white_check_mark:")
MAYBE_EMOTE = _emote(":question:")
NO_EMOTE = _emote(":x:")

TANK_EMOTE = _emote(":shield:")
DPS_EMOTE = _emote(":crossed_swords:")
SUPPORT_EMOTE = _emote(":sparkling_heart:")

# Display order is the order reactions are added in
GVG_EMOTES: Dict[str, str] = {
    YES_EMOTE: "yes",
    MAYBE_EMOTE: "maybe",
    NO_EMOTE: "no"
}

VFS_EMOTES: Dict[str, str] = {
    TANK_EMOTE: "tank",
    DPS_EMOTE: "dps",
    SUPPORT_EMOTE: "support"
}


def emotes_for(category: str) -> Dict[str, str]:
    """
    Get every registration emote of an event category.

    :param category: Event category
    :return: Dispositions indexed by emote, in display order
    """
    return dict(GVG_EMOTES if category == GUILDWARS else VFS_EMOTES)


def disposition_for_emote(category: str, emote: str) -> Optional[str]:
    """
    Get the disposition a reaction stands for.

    :param category: Event category
    :param emote: Reaction emoji name
    :return: Disposition, or None if the reaction means nothing for
        the event
    """
    bare = _bare(emote)
    for candidate, disposition in emotes_for(category).items():
        if _bare(candidate) == bare:
            return disposition

    return None
