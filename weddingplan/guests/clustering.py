"""
Guest map clustering.

Greedy single pass: each guest joins the first group whose running centre is
within THRESHOLD_DEGREES on both axes, otherwise it starts a new group.
Groups are never merged afterwards, so results depend on input order.
Fine for a guest list; not a spatial index.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

# ~10 miles
THRESHOLD_DEGREES = 0.15


@dataclass
class LocationGroup:
    lat: float
    lng: float
    label: str
    guests: list[Mapping[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lat": self.lat,
            "lng": self.lng,
            "label": self.label,
            "count": len(self.guests),
            "guests": [
                {"id": str(g.get("id")), "name": g.get("name"), "rsvp_status": g.get("rsvp_status")}
                for g in self.guests
            ],
        }


def location_label(address: str | None) -> str:
    """'12 Oak St, Springfield, IL 62701' -> 'Springfield, IL'."""
    if not address:
        return "Unknown"
    parts = address.split(",")
    if len(parts) < 2:
        return address
    city = parts[-2].strip()
    tail = parts[-1].strip().split(" ")
    return f"{city}, {tail[0]}"


def group_guests_by_location(
    guests: Iterable[Mapping[str, Any]],
    threshold: float = THRESHOLD_DEGREES,
) -> list[LocationGroup]:
    groups: list[LocationGroup] = []

    for guest in guests:
        lat = guest.get("latitude")
        lng = guest.get("longitude")
        if lat is None or lng is None:
            continue
        lat, lng = float(lat), float(lng)

        for group in groups:
            if abs(group.lat - lat) < threshold and abs(group.lng - lng) < threshold:
                group.guests.append(guest)
                n = len(group.guests)
                group.lat = (group.lat * (n - 1) + lat) / n
                group.lng = (group.lng * (n - 1) + lng) / n
                break
        else:
            groups.append(LocationGroup(
                lat=lat,
                lng=lng,
                label=location_label(guest.get("address")),
                guests=[guest],
            ))

    return groups
