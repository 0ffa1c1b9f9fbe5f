"""Unit tests for cooperative deadline timers."""
from docgate.core.timers import DeadlineTimers


class TestDeadlineTimers:

    def test_timer_expires_after_delay(self, fake_clock):
        timers = DeadlineTimers(fake_clock)
        timers.start("identity", 10000, token=1)

        fake_clock.advance_ms(9999)
        assert timers.expired() == []

        fake_clock.advance_ms(1)
        due = timers.expired()
        assert [(h.name, h.token) for h in due] == [("identity", 1)]
        # one-shot
        assert timers.expired() == []
        assert len(timers) == 0

    def test_restart_replaces_previous_timer(self, fake_clock):
        timers = DeadlineTimers(fake_clock)
        first = timers.start("extraction", 100, token=1)
        timers.start("extraction", 500, token=2)

        assert first.cancelled
        fake_clock.advance_ms(200)
        assert timers.expired() == []
        fake_clock.advance_ms(300)
        assert [h.token for h in timers.expired()] == [2]

    def test_cancel_and_cancel_all(self, fake_clock):
        timers = DeadlineTimers(fake_clock)
        timers.start("a", 10, token=1)
        timers.start("b", 10, token=1)

        assert timers.cancel("a") is True
        assert timers.cancel("a") is False
        assert timers.is_active("b")
        assert timers.cancel_all() == 1
        assert not timers.is_active("b")

        fake_clock.advance(1)
        assert timers.expired() == []

    def test_expired_sorted_by_deadline(self, fake_clock):
        timers = DeadlineTimers(fake_clock)
        timers.start("late", 300, token=1)
        timers.start("early", 100, token=1)

        fake_clock.advance(1)
        assert [h.name for h in timers.expired()] == ["early", "late"]

    def test_next_deadline(self, fake_clock):
        timers = DeadlineTimers(fake_clock)
        assert timers.next_deadline() is None

        timers.start("a", 5000, token=1)
        timers.start("b", 1000, token=1)
        assert timers.next_deadline() == fake_clock.now + 1.0
