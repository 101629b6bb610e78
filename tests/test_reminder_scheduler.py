"""
tests/test_reminder_scheduler.py - ReminderScheduler Unit Tests
================================================================

Automatic reminders (at most once, fail-closed on vanished channels,
retried on send failures), manual reminders, the expired event sweep
and shutdown waiting for in-flight work.
"""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

from muster.database import StorageUnavailable
from muster.events.calendar.event_store import EventRecordStore
from muster.events.reminders import scheduler as scheduler_module
from tests.conftest import NOW, event_attrs
from tests.fakes import run_async


class TestPollTick:
    def test_due_event_reminded_once(self, store, registry, scheduler, notifier):
        run_async(store.create("E1", event_attrs(start_at=NOW + 1800)))
        run_async(registry.set_disposition("E1", "u1", "tank"))

        assert run_async(scheduler.poll_tick()) == 1
        assert run_async(scheduler.poll_tick()) == 0

        assert len(notifier.broadcasts) == 1
        assert notifier.dm_recipients == ["u1"]

        record = store.get("E1")
        assert record.reminder_sent is True
        assert record.reminder_artifact_ids == ["9001"]

    def test_broadcast_carries_role_mention(self, store, scheduler, notifier):
        run_async(store.create("E1", event_attrs(start_at=NOW + 60)))
        run_async(store.create(
            "G1", event_attrs(category="guildwars", start_at=NOW + 60)
        ))

        run_async(scheduler.poll_tick())

        mentions = {p.event_id: p.mention for _, p in notifier.broadcasts}
        assert mentions == {"E1": "<@&11>", "G1": "<@&22>"}

    def test_no_role_configured(self, store, scheduler, notifier, roles):
        roles.vfs = None
        run_async(store.create("E1", event_attrs(start_at=NOW + 60)))

        run_async(scheduler.poll_tick())

        assert notifier.broadcasts[0][1].mention is None

    def test_outside_window_not_reminded(self, store, scheduler, notifier):
        run_async(store.create("E1", event_attrs(start_at=NOW + 3601)))
        run_async(store.create("E2", event_attrs(start_at=NOW - 5)))

        assert run_async(scheduler.poll_tick()) == 0
        assert notifier.broadcasts == []

    def test_gone_channel_fails_closed(self, store, scheduler, notifier):
        run_async(store.create("E1", event_attrs(start_at=NOW + 60)))
        notifier.gone_channels.add("100")

        assert run_async(scheduler.poll_tick()) == 0
        assert run_async(scheduler.poll_tick()) == 0

        record = store.get("E1")
        assert record.reminder_sent is True
        assert record.reminder_artifact_ids == []
        assert notifier.broadcasts == []
        assert notifier.resolutions == ["100"]

    def test_unreachable_channel_retried(self, store, scheduler, notifier):
        run_async(store.create("E1", event_attrs(start_at=NOW + 60)))
        notifier.unreachable_channels.add("100")

        run_async(scheduler.poll_tick())
        assert store.get("E1").reminder_sent is False

        notifier.unreachable_channels.clear()
        assert run_async(scheduler.poll_tick()) == 1
        assert store.get("E1").reminder_sent is True

    def test_send_failure_retried(self, store, registry, scheduler, notifier):
        run_async(store.create("E1", event_attrs(start_at=NOW + 60)))
        run_async(registry.set_disposition("E1", "u1", "dps"))
        notifier.broadcast_fails = True

        assert run_async(scheduler.poll_tick()) == 0
        assert store.get("E1").reminder_sent is False
        assert notifier.directs == []

        notifier.broadcast_fails = False
        assert run_async(scheduler.poll_tick()) == 1
        assert notifier.dm_recipients == ["u1"]

    def test_dm_failures_do_not_block_flag(
            self, store, registry, scheduler, notifier
    ):
        run_async(store.create("E1", event_attrs(start_at=NOW + 60)))
        run_async(registry.set_disposition("E1", "u1", "dps"))
        notifier.failing_users.add("u1")

        assert run_async(scheduler.poll_tick()) == 1
        assert store.get("E1").reminder_sent is True

    def test_storage_failure_does_not_stop_tick(
            self, store, scheduler, notifier, monkeypatch
    ):
        run_async(store.create("E1", event_attrs(start_at=NOW + 60)))
        run_async(store.create("E2", event_attrs(start_at=NOW + 120)))

        real_mark = EventRecordStore.mark_reminder_sent

        async def flaky_mark(self, event_id, artifact_id=None):
            if event_id == "E1":
                raise StorageUnavailable(event_id)
            await real_mark(self, event_id, artifact_id)

        monkeypatch.setattr(
            EventRecordStore, "mark_reminder_sent", flaky_mark
        )

        assert run_async(scheduler.poll_tick()) == 1
        assert store.get("E2").reminder_sent is True
        assert store.get("E1").reminder_sent is False

    def test_guildwars_switch_then_remind(
            self, store, registry, scheduler, notifier
    ):
        run_async(store.create(
            "E1", event_attrs(category="guildwars", start_at=NOW + 3500)
        ))
        run_async(registry.set_disposition("E1", "u1", "yes"))
        run_async(registry.set_disposition("E1", "u1", "maybe"))

        assert registry.dispositions_of("E1") == {
            "yes": set(), "maybe": {"u1"}, "no": set()
        }

        assert run_async(scheduler.poll_tick(now=NOW + 3500 - 58)) == 1
        assert len(notifier.broadcasts) == 1
        assert notifier.dm_recipients == ["u1"]
        assert store.get("E1").reminder_sent is True


    def test_unexpected_error_does_not_stop_tick(
            self, store, scheduler, notifier
    ):
        run_async(store.create("E1", event_attrs(start_at=NOW + 60)))
        run_async(store.create("E2", event_attrs(start_at=NOW + 120)))

        original = notifier.send_broadcast

        async def broken_for_e1(channel_ref, payload):
            if payload.event_id == "E1":
                raise RuntimeError("boom")
            return await original(channel_ref, payload)

        notifier.send_broadcast = broken_for_e1

        assert run_async(scheduler.poll_tick()) == 1
        assert store.get("E2").reminder_sent is True
        assert store.get("E1").reminder_sent is False


class TestDispatchAutomatic:
    def test_concurrent_dispatch_sends_once(self, store, scheduler, notifier):
        run_async(store.create("E1", event_attrs(start_at=NOW + 60)))

        async def _inner():
            return await asyncio.gather(
                scheduler.dispatch_automatic("E1"),
                scheduler.dispatch_automatic("E1"),
            )

        results = run_async(_inner())

        assert sorted(results) == [False, True]
        assert len(notifier.broadcasts) == 1

    def test_reaction_during_dispatch_is_kept(
            self, store, registry, scheduler, notifier
    ):
        run_async(store.create("E1", event_attrs(start_at=NOW + 60)))
        run_async(registry.set_disposition("E1", "u1", "tank"))

        async def _inner():
            await asyncio.gather(
                scheduler.dispatch_automatic("E1"),
                registry.set_disposition("E1", "u2", "dps"),
            )

        run_async(_inner())

        record = store.get("E1")
        assert record.reminder_sent is True
        assert record.dispositions["dps"] == {"u2"}

    def test_unknown_event(self, scheduler, notifier):
        assert run_async(scheduler.dispatch_automatic("nope")) is False
        assert notifier.resolutions == []


class TestSendManual:
    def test_ignores_automatic_flag(self, store, registry, scheduler, notifier):
        run_async(store.create("E1", event_attrs(start_at=NOW + 60)))
        run_async(registry.set_disposition("E1", "u1", "tank"))
        run_async(scheduler.poll_tick())

        assert run_async(scheduler.send_manual("200", "E1")) is True
        assert run_async(scheduler.send_manual("200", "E1")) is True

        assert [channel for channel, _ in notifier.broadcasts] == [
            "100", "200", "200"
        ]
        assert notifier.dm_recipients == ["u1", "u1", "u1"]
        assert store.get("E1").reminder_artifact_ids == [
            "9001", "9002", "9003"
        ]

    def test_does_not_set_automatic_flag(self, store, scheduler, notifier):
        run_async(store.create("E1", event_attrs(start_at=NOW + 60)))

        run_async(scheduler.send_manual("100", "E1"))
        assert store.get("E1").reminder_sent is False

        assert run_async(scheduler.poll_tick()) == 1
        assert len(notifier.broadcasts) == 2

    def test_dispositions_and_quiet_mode(
            self, store, registry, scheduler, notifier
    ):
        run_async(store.create("E1", event_attrs()))
        run_async(registry.set_disposition("E1", "u1", "support"))

        run_async(scheduler.send_manual(
            "100", "E1", include_dispositions=True, notify_attendees=False
        ))

        payload = notifier.broadcasts[0][1]
        assert payload.dispositions == {
            "tank": [], "dps": [], "support": ["u1"]
        }
        assert notifier.directs == []

    def test_unknown_event(self, scheduler, notifier):
        assert run_async(scheduler.send_manual("100", "nope")) is False
        assert notifier.broadcasts == []

    def test_send_failure(self, store, scheduler, notifier):
        run_async(store.create("E1", event_attrs()))
        notifier.broadcast_fails = True

        assert run_async(scheduler.send_manual("100", "E1")) is False
        assert store.get("E1").reminder_artifact_ids == []


    def test_unexpected_send_error(self, store, scheduler, notifier):
        run_async(store.create("E1", event_attrs()))

        async def broken(channel_ref, payload):
            raise RuntimeError("boom")

        notifier.send_broadcast = broken

        assert run_async(scheduler.send_manual("100", "E1")) is False
        assert store.get("E1").reminder_artifact_ids == []

    def test_role_lookup_error(self, store, scheduler, notifier, roles):
        run_async(store.create("E1", event_attrs()))

        def broken(category):
            raise KeyError(category)

        roles.for_category = broken

        assert run_async(scheduler.send_manual("100", "E1")) is False
        assert notifier.broadcasts == []


class TestSweep:
    def test_removes_started_events(self, store, scheduler, notifier, clock):
        run_async(store.create("old", event_attrs(start_at=NOW - 10)))
        run_async(store.create("new", event_attrs(start_at=NOW + 10)))
        run_async(store.append_reminder_artifact("old", "m1"))

        assert run_async(scheduler.sweep_tick()) == 1

        assert store.get("old") is None
        assert store.get("new") is not None
        assert notifier.deleted == [("100", "m1")]

    def test_cleanup_failure_does_not_block_removal(
            self, store, scheduler, notifier
    ):
        run_async(store.create("old", event_attrs(start_at=NOW - 10)))
        run_async(store.append_reminder_artifact("old", "m1"))
        notifier.delete_raises = True

        assert run_async(scheduler.sweep_tick()) == 1
        assert store.get("old") is None

    def test_nothing_to_sweep(self, store, scheduler):
        run_async(store.create("new", event_attrs(start_at=NOW + 10)))
        assert run_async(scheduler.sweep_tick()) == 0


    def test_deletion_hook(self, store, scheduler):
        deleted = []
        scheduler.on_delete = deleted.append
        run_async(store.create("old", event_attrs(start_at=NOW - 10)))
        run_async(store.create("new", event_attrs(start_at=NOW + 10)))

        run_async(scheduler.sweep_tick())

        assert deleted == ["old"]

    def test_hook_error_does_not_stop_sweep(self, store, scheduler):
        def broken(event_id):
            raise RuntimeError(event_id)

        scheduler.on_delete = broken
        run_async(store.create("a", event_attrs(start_at=NOW - 10)))
        run_async(store.create("b", event_attrs(start_at=NOW - 20)))

        run_async(scheduler.sweep_tick())

        assert store.list_all() == []


class TestPurge:
    def test_purge_with_announcement(self, store, scheduler, notifier):
        run_async(store.create("E1", event_attrs()))
        run_async(store.append_reminder_artifact("E1", "m1"))

        assert run_async(
            scheduler.purge("E1", include_announcement=True)
        ) is True

        assert notifier.deleted == [("100", "E1"), ("100", "m1")]
        assert store.get("E1") is None

    def test_purge_unknown(self, scheduler, notifier):
        assert run_async(scheduler.purge("nope")) is False
        assert notifier.deleted == []


    def test_purge_calls_deletion_hook(self, store, scheduler):
        deleted = []
        scheduler.on_delete = deleted.append
        run_async(store.create("E1", event_attrs()))

        run_async(scheduler.purge("E1"))
        run_async(scheduler.purge("E1"))

        assert deleted == ["E1"]


class TestShutdown:
    def test_shutdown_waits_for_running_tick(self, store, scheduler, notifier):
        run_async(store.create("E1", event_attrs(start_at=NOW + 60)))

        async def _inner():
            gate = asyncio.Event()
            original = notifier.send_broadcast

            async def slow_broadcast(channel_ref, payload):
                await gate.wait()
                return await original(channel_ref, payload)

            notifier.send_broadcast = slow_broadcast

            tick = asyncio.create_task(scheduler.poll_tick())
            await asyncio.sleep(0)
            shutdown = asyncio.create_task(scheduler.shutdown())
            await asyncio.sleep(0)
            finished_early = shutdown.done()

            gate.set()
            await asyncio.gather(tick, shutdown)
            return finished_early

        assert run_async(_inner()) is False
        assert store.get("E1").reminder_sent is True


class TestTimers:
    def test_start_and_stop(self, scheduler, monkeypatch):
        created = {}

        def fake_loop(**interval):
            def wrap(coro):
                loop = MagicMock()
                loop.is_running.return_value = False
                created[coro.__name__] = (interval, loop)
                return loop
            return wrap

        monkeypatch.setattr(scheduler_module.tasks, "loop", fake_loop)

        scheduler.start()

        poll_interval, poll_loop = created["poll_tick"]
        sweep_interval, sweep_loop = created["sweep_tick"]
        assert poll_interval == {"seconds": scheduler.poll_interval}
        assert sweep_interval == {"hours": scheduler.sweep_interval}
        poll_loop.start.assert_called_once()
        sweep_loop.start.assert_called_once()

        poll_loop.is_running.return_value = True
        sweep_loop.is_running.return_value = True
        scheduler.stop()

        poll_loop.stop.assert_called_once()
        sweep_loop.stop.assert_called_once()

    def test_stop_before_start(self, scheduler):
        scheduler.stop()
        assert scheduler.poll_loop is None
