import pytest

from classroom.models.attendance import AttendanceStatus
from classroom.services.gps import calculate_distance, classify_distance


@pytest.mark.parametrize(
    "a,b",
    [
        ((0.0, 0.0), (0.0, 0.00045)),
        ((12.9716, 77.5946), (12.9721, 77.5950)),
        ((-33.8688, 151.2093), (51.5074, -0.1278)),
    ],
)
def test_distance_is_symmetric_and_non_negative(a, b):
    forward = calculate_distance(a[0], a[1], b[0], b[1])
    backward = calculate_distance(b[0], b[1], a[0], a[1])
    assert forward >= 0
    assert forward == pytest.approx(backward)


def test_distance_to_self_is_zero():
    assert calculate_distance(28.6139, 77.2090, 28.6139, 77.2090) == 0


def test_known_small_offsets():
    assert calculate_distance(0, 0, 0, 0.00045) == pytest.approx(50.04, abs=0.01)
    assert calculate_distance(0, 0, 0, 0.0004) == pytest.approx(44.48, abs=0.01)


def test_long_distance_matches_great_circle():
    # Sydney to London is roughly 17,000 km
    assert calculate_distance(-33.8688, 151.2093, 51.5074, -0.1278) == pytest.approx(16_994_000, rel=0.01)


@pytest.mark.parametrize(
    "distance,expected",
    [
        (0.0, AttendanceStatus.PRESENT),
        (44.5, AttendanceStatus.PRESENT),
        (50.0, AttendanceStatus.PRESENT),
        (50.04, AttendanceStatus.BUNK),
        (1200.0, AttendanceStatus.BUNK),
    ],
)
def test_classify_distance_uses_fifty_meter_fence(distance, expected):
    assert classify_distance(distance, 50) == expected
