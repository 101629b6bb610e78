"""
Events Module.

Guild events are announced in a channel and members register for them
by reacting to the announcement. The events cog routes those reactions
into the RSVP registry and runs the reminder scheduler.
"""
