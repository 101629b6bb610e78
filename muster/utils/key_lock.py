"""
Key Lock Module.

Serializes async work per key (event IDs for record mutations, user IDs
for DMs). Locks are created when a key is first requested and dropped
again once nobody holds or waits on them, so the lock table only ever
contains keys that are in use.

A task that already holds the lock for a key may enter it again; this
lets the reminder dispatch hold an event's lock across the broadcast
and still commit through the store, which takes the same lock.
"""

import asyncio
from asyncio import Lock, Task
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Hashable, Optional


class KeyLock:
    """Per-key async lock manager."""

    __slots__ = ["locks", "owners", "depths", "users"]

    def __init__(self) -> None:
        """Initializer for the KeyLock class."""
        self.locks: Dict[Hashable, Lock] = {}
        self.owners: Dict[Hashable, Optional[Task]] = {}
        self.depths: Dict[Hashable, int] = {}

        # Number of tasks either holding or waiting on each key
        self.users: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """
        Hold the lock for a key for the duration of the context.

        :param key: Lock key
        """
        task = asyncio.current_task()
        if task is not None and self.owners.get(key) is task:
            self.depths[key] += 1
            try:
                yield
            finally:
                self.depths[key] -= 1
            return

        lock = self.locks.setdefault(key, Lock())
        self.users[key] = self.users.get(key, 0) + 1
        try:
            async with lock:
                self.owners[key] = task
                self.depths[key] = 1
                try:
                    yield
                finally:
                    self.owners.pop(key, None)
                    self.depths.pop(key, None)
        finally:
            # Nobody else is using the key, so the lock can go
            self.users[key] -= 1
            if self.users[key] == 0:
                del self.users[key]
                self.locks.pop(key, None)

    async def queue_call(
            self,
            call: Callable,
            key: Hashable,
            *args,
            **kwargs
    ) -> Any:
        """
        Enqueue an async call behind every other call for the same key.

        :param call: Callable to call once the key lock is free
        :param key: Key of FIFO queue
        :return: Whatever the call returns
        """
        async with self.hold(key):
            return await call(*args, **kwargs)
