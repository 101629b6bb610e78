# pylint: skip-file
"""
Muster settings.

Plain module constants read once at import. Fill in the bot token and
owners before the first run; everything else has workable defaults.
Role mentions are not configured here but in the YAML file named by
file_role_config, since staff change those while the bot is running.

========================================================================
Log levels (loguru numbering), from most to least chatty:

5  | Trace    | Individual RSVP changes.
10 | Debug    | Loaded record counts and failed message cleanups.
20 | Info     | Events created or deleted, reminders sent, scheduler
              | started or stopped.
30 | Warning  | Skipped stored records, vanished channels, DMs that
              | could not be delivered and stale announcements.
40 | Error    | Failed broadcasts and database writes.
50 | Critical | Not used; a level this high keeps the sink quiet.

console_log_level applies to stderr; master_log_level applies to the
Discord channel given by master_log_channel, if there is one.
"""

# Command prefix
command_prefix = "&"

# Bot Description (Shown in help)
bot_description = "Muster: Guild event RSVP and reminder bot using Pycord"

# Discord bot token
bot_token = ""

# Bot owner user IDs (Set of ints)
bot_owners = set()

# Master log channel ID (Leave as 0 for no logs)
master_log_channel = 0

# Log level
master_log_level = 30
console_log_level = 20

# Embed colours
embed_color_normal = 0xa0e0f0
embed_color_success = 0x2ded43
embed_color_severe = 0xff2b4b
embed_color_default_event = 0x00ae86

# File paths
file_events_db = "./resources/events/events.sqlite"
file_role_config = "./resources/events/roles.yml"

# Timers
reminder_poll_interval_seconds = 60.0
event_sweep_interval_hours = 24.0

# Automatic reminders go out once an event starts within this window
reminder_lead_window_seconds = 3600

# Upper bound for a single call to Discord made by the notifier
notifier_timeout_seconds = 15.0
