import pytest

from chavrusa.domain.posts.matching import matches, sort_by_availability, time_to_minutes


def slot(day, start="", end="", flexible=False):
    return {"day": day, "start": start, "end": end, "flexible": flexible}


EVENING_MONDAY = {
    "openToOtherTimes": False,
    "availabilitySlots": [slot("Mon", "18:00", "20:00")],
}


def test_no_filters_always_match():
    assert matches({"openToOtherTimes": False, "availabilitySlots": []}) is True


@pytest.mark.parametrize(
    "day,time",
    [("Mon", "19:00"), ("Sun", "03:00"), ("Fri", None), (None, "23:59")],
)
def test_open_to_other_times_matches_everything(day, time):
    post = {"openToOtherTimes": True, "availabilitySlots": []}

    assert matches(post, day, time) is True


@pytest.mark.parametrize(
    "day,time,expected",
    [
        ("Mon", "18:00", True),
        ("Mon", "20:00", True),
        ("Mon", "19:15", True),
        ("Mon", "17:59", False),
        ("Mon", "20:01", False),
        ("Tue", "19:00", False),
        ("Mon", None, True),
        (None, "19:00", True),
        (None, "08:00", False),
    ],
)
def test_fixed_slot_window_is_inclusive(day, time, expected):
    assert matches(EVENING_MONDAY, day, time) is expected


def test_flexible_slot_matches_any_time_that_day():
    post = {"openToOtherTimes": False, "availabilitySlots": [slot("Wed", flexible=True)]}

    assert matches(post, "Wed", "03:00") is True
    assert matches(post, "Thu", "03:00") is False


def test_post_without_slots_never_matches_a_filter():
    post = {"openToOtherTimes": False, "availabilitySlots": []}

    assert matches(post, "Mon") is False
    assert matches(post, None, "10:00") is False


def test_unparseable_time_is_ignored():
    assert matches(EVENING_MONDAY, "Mon", "7pm") is True
    assert matches(EVENING_MONDAY, None, "25:00") is True


def test_time_to_minutes():
    assert time_to_minutes("00:00") == 0
    assert time_to_minutes("18:30") == 1110
    assert time_to_minutes("bad") is None


def test_sort_puts_matches_first_then_newest():
    posts = [
        {"id": "old-match", "createdAt": "2026-01-01T10:00:00.000Z", **EVENING_MONDAY},
        {
            "id": "new-miss",
            "createdAt": "2026-01-03T10:00:00.000Z",
            "openToOtherTimes": False,
            "availabilitySlots": [slot("Tue", "09:00", "10:00")],
        },
        {"id": "new-match", "createdAt": "2026-01-02T10:00:00.000Z", **EVENING_MONDAY},
    ]

    ordered = sort_by_availability(posts, "Mon", "19:00")

    assert [p["id"] for p in ordered] == ["new-match", "old-match", "new-miss"]


def test_sort_without_filters_is_newest_first():
    posts = [
        {"id": "a", "createdAt": "2026-01-01T10:00:00.000Z", **EVENING_MONDAY},
        {"id": "b", "createdAt": "2026-01-02T10:00:00.000Z", **EVENING_MONDAY},
    ]

    assert [p["id"] for p in sort_by_availability(posts)] == ["b", "a"]
