"""
tests/test_notification_dispatcher.py - NotificationDispatcher Unit Tests
==========================================================================

Recipient selection by disposition family, and isolation of DM failures
so one unreachable member never blocks the rest.
"""

from __future__ import annotations

from muster.events.reminders.notifier import KIND_REMINDER
from tests.conftest import event_attrs
from tests.fakes import run_async


def _register(registry, event_id, pairs):
    for user_id, disposition in pairs:
        run_async(registry.set_disposition(event_id, user_id, disposition))


class TestDispatchPersonal:
    def test_vfs_reaches_every_role(self, store, registry, dispatcher, notifier):
        run_async(store.create("E1", event_attrs()))
        _register(registry, "E1", [("a", "tank"), ("b", "dps"), ("c", "support")])

        report = run_async(dispatcher.dispatch_personal("E1"))

        assert sorted(report.delivered) == ["a", "b", "c"]
        assert report.failed == []
        payload = notifier.directs[0][1]
        assert payload.kind == KIND_REMINDER
        assert payload.personal is True

    def test_guildwars_skips_no(self, store, registry, dispatcher, notifier):
        run_async(store.create("G1", event_attrs(category="guildwars")))
        _register(registry, "G1", [("a", "yes"), ("b", "maybe"), ("c", "no")])

        report = run_async(dispatcher.dispatch_personal("G1"))

        assert sorted(report.delivered) == ["a", "b"]
        assert "c" not in notifier.dm_recipients

    def test_failure_does_not_block_others(
            self, store, registry, dispatcher, notifier
    ):
        run_async(store.create("E1", event_attrs()))
        _register(registry, "E1", [("a", "tank"), ("b", "tank"), ("c", "tank")])
        notifier.failing_users.add("b")

        report = run_async(dispatcher.dispatch_personal("E1"))

        assert report.delivered == ["a", "c"]
        assert report.failed == ["b"]
        assert notifier.dm_recipients == ["a", "c"]

    def test_raising_notifier_is_contained(
            self, store, registry, dispatcher, notifier
    ):
        run_async(store.create("E1", event_attrs()))
        _register(registry, "E1", [("a", "dps"), ("b", "dps")])
        notifier.raising_users.add("a")

        report = run_async(dispatcher.dispatch_personal("E1"))

        assert report.delivered == ["b"]
        assert report.failed == ["a"]

    def test_reads_current_attendees(
            self, store, registry, dispatcher, notifier
    ):
        run_async(store.create("E1", event_attrs()))
        _register(registry, "E1", [("a", "tank"), ("b", "dps")])
        run_async(registry.clear_disposition("E1", "a", "tank"))

        report = run_async(dispatcher.dispatch_personal("E1"))

        assert report.delivered == ["b"]

    def test_unknown_event(self, dispatcher, notifier):
        report = run_async(dispatcher.dispatch_personal("nope"))
        assert report.delivered == [] and report.failed == []
        assert notifier.directs == []
