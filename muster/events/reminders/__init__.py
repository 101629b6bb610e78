"""
Event Reminders Module.

Automatic reminders go out once per event shortly before it starts,
manual reminders whenever staff ask for one. Both post in the event
channel and DM every attendee.
"""
