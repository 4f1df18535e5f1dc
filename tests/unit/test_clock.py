"""Tests for the injectable clocks."""

from datetime import UTC, date, datetime, timedelta

from fleet_kernel.domain.clock import DeterministicClock, SystemClock


class TestDeterministicClock:
    def test_frozen_until_moved(self):
        clock = DeterministicClock()

        assert clock.now() == clock.now()

    def test_set_date_is_noon_utc(self):
        clock = DeterministicClock()
        clock.set_date(date(2024, 2, 29))

        assert clock.now() == datetime(2024, 2, 29, 12, tzinfo=UTC)
        assert clock.today() == date(2024, 2, 29)

    def test_advance_rolls_into_next_day(self):
        clock = DeterministicClock()
        clock.set_date(date(2024, 3, 15))

        clock.advance(12 * 3600)

        assert clock.today() == date(2024, 3, 16)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(60)
        moment = datetime(2024, 1, 1, 9, tzinfo=UTC)

        clock.set_time(moment)

        assert clock.now() == moment


def test_system_clock_is_aware_and_current():
    before = datetime.now(UTC)
    now = SystemClock().now()

    assert now.tzinfo is not None
    assert before - timedelta(seconds=1) <= now <= datetime.now(UTC) + timedelta(seconds=1)
