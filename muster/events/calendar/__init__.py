"""
Event Calendar Module.

Holds the event records and everything that changes them: the event
store that persists them, the RSVP registry that tracks who attends
what, and the live projections that keep announcements up to date.
"""
