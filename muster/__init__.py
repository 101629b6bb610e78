"""Muster: guild event RSVPs and reminders for Discord."""
