"""
Role Config Module.

Stores which role gets mentioned in reminders for each family of
events: one role for VFS events (public, guild and both) and one for
guild wars. The configuration is a small YAML file so that it can be
edited by hand when the bot is offline.
"""

import os
from typing import Optional

import yaml
from loguru import logger

from muster.events.calendar.event_record import GUILDWARS
from muster.events.reminders.notifier import RoleMentionLookup

VFS_KEY = "vfs_role_id"
GVG_KEY = "gvg_role_id"
ROLE_MENTION = "<@&{}>"


class RoleConfig(RoleMentionLookup):
    """YAML-backed role mention configuration."""

    __slots__ = ["file_path", "config"]

    def __init__(self, file_path: str) -> None:
        """
        Initializer for the RoleConfig class.

        A missing file is created with no roles configured.

        :param file_path: Path to the YAML file
        """
        self.file_path = file_path
        self.config = {VFS_KEY: None, GVG_KEY: None}
        self.load()

    def load(self) -> None:
        """Load role configuration from file."""
        if not os.path.exists(self.file_path):
            self.save()
            return

        try:
            with open(self.file_path, "r", encoding="utf-8") as file:
                loaded = yaml.safe_load(file) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(
                "Failed to load role config from {}: {}",
                self.file_path,
                e
            )
            return

        for key in (VFS_KEY, GVG_KEY):
            self.config[key] = loaded.get(key)

    def save(self) -> None:
        """Save role configuration to file."""
        directory = os.path.dirname(self.file_path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.file_path, "w", encoding="utf-8") as file:
                yaml.dump(
                    self.config,
                    file,
                    default_flow_style=False,
                    allow_unicode=True
                )
        except OSError as e:
            logger.error(
                "Failed to save role config to {}: {}",
                self.file_path,
                e
            )

    @staticmethod
    def key_for(category: str) -> str:
        """
        Get the config key for an event category.

        :param category: Event category
        :return: Config key
        """
        return GVG_KEY if category == GUILDWARS else VFS_KEY

    def set_role(self, category: str, role_id: Optional[int]) -> None:
        """
        Set or clear the role mentioned for an event category.

        :param category: Event category (any category of the family)
        :param role_id: Role ID, or None to clear
        """
        self.config[self.key_for(category)] = (
            str(role_id) if role_id is not None else None
        )
        self.save()

    def for_category(self, category: str) -> Optional[str]:
        """
        Get the role mention for an event category.

        :param category: Event category
        :return: Role mention, or None if no role is configured
        """
        role_id = self.config.get(self.key_for(category))
        if not role_id:
            return None

        return ROLE_MENTION.format(role_id)
