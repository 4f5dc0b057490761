import pytest

from stackeer.ttl import is_valid

T = 1_700_000_000.0
HOUR = 3600.0


def test_missing_timestamp_is_never_valid() -> None:
    assert is_valid(None, 72, T) is False


@pytest.mark.parametrize("offset_hours", [0, 1, 24, 71.99])
def test_valid_inside_window(offset_hours: float) -> None:
    assert is_valid(T, 72, T + offset_hours * HOUR) is True


@pytest.mark.parametrize("offset_hours", [72, 73, 24 * 40])
def test_invalid_from_window_end(offset_hours: float) -> None:
    assert is_valid(T, 72, T + offset_hours * HOUR) is False


def test_zero_ttl_always_revalidates() -> None:
    assert is_valid(T, 0, T) is False


def test_timestamp_in_the_future_is_invalid() -> None:
    assert is_valid(T, 72, T - 1) is False


def test_crossing_month_boundary_uses_elapsed_duration() -> None:
    # Jan 31 23:00 UTC -> Feb 1 01:00 UTC is two hours, not a month.
    stored = 1_706_742_000.0
    assert is_valid(stored, 3, stored + 2 * HOUR) is True
