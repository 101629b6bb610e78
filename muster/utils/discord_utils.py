"""
Discord utilities module.

Shared Discord error groups and listener helpers.
"""
import functools
from typing import Callable

from discord import Forbidden, HTTPException, NotFound, RawReactionActionEvent

# Errors that mean a Discord fetch or send did not go through
FETCH_FAIL_EXCEPTIONS = (NotFound, Forbidden, HTTPException)


def filter_self_react(func: Callable) -> Callable:
    """
    Decorator for reaction listeners that drops reactions the bot made
    itself, including the registration emotes it seeds announcements
    with. Reactions arriving before the bot has logged in are dropped
    too, since they can't be told apart yet.

    :param func: Async reaction listener of a cog with a bot attribute
    :return: Wrapped listener
    """

    @functools.wraps(func)
    async def wrapped(
            self,
            payload: RawReactionActionEvent,
            *args,
            **kwargs
    ) -> None:
        bot_user = self.bot.user
        if bot_user is None or payload.user_id == bot_user.id:
            return

        return await func(self, payload, *args, **kwargs)

    return wrapped
