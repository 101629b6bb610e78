# pylint: skip-file

"""
English Strings.

All strings displayed to discord users will be taken from this file; all
logger messages are hardcoded and shouldn't be in here.
"""

"""''''''''''''
Event Reminders
''''''''''''"""

events_reminder_title = "\U0001F514 [{}] - {} \U0001F514"
events_reminder_desc = "**Starting in <t:{0}:R>!**\n\n\U0001F4C5 <t:{0}:F>"
events_reminder_eta_footer = "Starts in {}"
events_reminder_personal_footer = "You signed up for this event."

events_registered_title = "Registered for [{}] - {} ✅"
events_registered_desc = "\U0001F4C5 <t:{0}:F> (<t:{0}:R>)"
events_registered_footer = "Don't be late and see you there!"

events_unregistered_title = "Unregistered from [{}] - {} ❌"
events_unregistered_desc = "\U0001F4C5 <t:{0}:F>"
events_unregistered_footer = "Hope to see you join next time!"

events_projection_title = "[{}] - {}"
events_projection_desc = "\U0001F4C5 <t:{0}:F> - ⏰ <t:{0}:R>"

events_field_empty = "​"
events_field_title = "{} ({})"
events_field_entry = "> <@{}>"

events_disposition_yes = "✅ Yes"
events_disposition_maybe = "❓ Maybe"
events_disposition_no = "❌ No"
events_disposition_tank = "\U0001F6E1️ Tank"
events_disposition_dps = "⚔️ DPS"
events_disposition_support = "\U0001F496 Support"
