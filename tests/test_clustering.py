import pytest

from weddingplan.guests.clustering import group_guests_by_location, location_label


def _guest(name, lat, lng, address=None):
    return {"id": name, "name": name, "latitude": lat, "longitude": lng, "address": address, "rsvp_status": "pending"}


def test_nearby_guests_share_a_group_with_running_mean_centre() -> None:
    groups = group_guests_by_location([
        _guest("a", 40.00, -74.00, "1 A St, Newark, NJ 07102"),
        _guest("b", 40.10, -74.10),
        _guest("c", 41.00, -74.00, "9 B Rd, Albany, NY 12207"),
    ])

    assert len(groups) == 2
    first, second = groups
    assert [g["name"] for g in first.guests] == ["a", "b"]
    assert first.lat == pytest.approx(40.05)
    assert first.lng == pytest.approx(-74.05)
    assert first.label == "Newark, NJ"
    assert second.label == "Albany, NY"


def test_threshold_is_strict_on_both_axes() -> None:
    groups = group_guests_by_location([
        _guest("a", 40.0, -74.0),
        _guest("b", 40.0, -73.5),
    ], threshold=0.5)

    assert len(groups) == 2


def test_guests_join_first_matching_group_without_merging() -> None:
    # c is close to both a and b, but only the first group is considered
    groups = group_guests_by_location([
        _guest("a", 40.0, -74.0),
        _guest("b", 40.2, -74.0),
        _guest("c", 40.1, -74.0),
    ], threshold=0.15)

    assert [len(g.guests) for g in groups] == [2, 1]
    assert [g["name"] for g in groups[0].guests] == ["a", "c"]


def test_guests_without_coordinates_are_skipped() -> None:
    groups = group_guests_by_location([
        _guest("a", None, -74.0),
        _guest("b", 40.0, None),
        _guest("c", "40.5", "-73.9"),
    ])

    assert len(groups) == 1
    assert groups[0].lat == 40.5


def test_group_to_dict_lists_guests() -> None:
    group = group_guests_by_location([_guest("a", 1.0, 2.0, "x, Town, ST")])[0]

    assert group.to_dict() == {
        "lat": 1.0,
        "lng": 2.0,
        "label": "Town, ST",
        "count": 1,
        "guests": [{"id": "a", "name": "a", "rsvp_status": "pending"}],
    }


@pytest.mark.parametrize("address,label", [
    ("12 Oak St, Springfield, IL 62701", "Springfield, IL"),
    ("Paris", "Paris"),
    ("", "Unknown"),
    (None, "Unknown"),
])
def test_location_label(address, label) -> None:
    assert location_label(address) == label
