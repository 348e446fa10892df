from datetime import UTC, datetime

from src.adapters.clock import SystemClock, as_local


def test_system_clock_is_utc():
    now = SystemClock().now()
    assert now.tzinfo is not None
    assert now.utcoffset().total_seconds() == 0
    assert abs((datetime.now(UTC) - now).total_seconds()) < 1.0


def test_as_local_keeps_instant():
    moment = datetime(2026, 3, 2, 13, 0, tzinfo=UTC)

    local = as_local(moment, "America/La_Paz")

    assert local.hour == 9
    assert local == moment


def test_as_local_treats_naive_as_utc():
    local = as_local(datetime(2026, 3, 2, 13, 0), "Asia/Tokyo")
    assert local.hour == 22
