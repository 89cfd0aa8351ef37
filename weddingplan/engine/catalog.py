"""
Canonical value sets for tenant data.

Statuses and categories are string constants, not Postgres ENUMs.
Adding a new category or event type requires only a code change, not a migration.
"""
from __future__ import annotations

# Vendor statuses
VENDOR_RESEARCHING = "researching"
VENDOR_CONTACTED = "contacted"
VENDOR_BOOKED = "booked"
VENDOR_REJECTED = "rejected"

VENDOR_STATUSES: tuple[str, ...] = (
    VENDOR_RESEARCHING,
    VENDOR_CONTACTED,
    VENDOR_BOOKED,
    VENDOR_REJECTED,
)

# Venue is tracked as its own milestone, never as one of the vendor categories
VENUE_CATEGORY = "Venue"

# Reference list for the "Book Vendors" milestone, in display order
VENDOR_CATEGORIES: tuple[str, ...] = (
    "Photography",
    "Videography",
    "Catering",
    "Florist",
    "Music/DJ",
    "Cake & Desserts",
    "Hair & Makeup",
    "Officiant",
)

# Guest RSVP states
RSVP_PENDING = "pending"
RSVP_CONFIRMED = "confirmed"
RSVP_DECLINED = "declined"

RSVP_STATUSES: tuple[str, ...] = (RSVP_PENDING, RSVP_CONFIRMED, RSVP_DECLINED)

# Task states and priorities
TASK_PENDING = "pending"
TASK_IN_PROGRESS = "in_progress"
TASK_COMPLETED = "completed"

TASK_STATUSES: tuple[str, ...] = (TASK_PENDING, TASK_IN_PROGRESS, TASK_COMPLETED)
TASK_PRIORITIES: tuple[str, ...] = ("high", "medium", "low")

# Wedding-adjacent events (value, label)
REHEARSAL_DINNER = "rehearsal_dinner"

EVENT_TYPES: tuple[tuple[str, str], ...] = (
    (REHEARSAL_DINNER, "Rehearsal Dinner"),
    ("bachelor_party", "Bachelor Party"),
    ("bachelorette_party", "Bachelorette Party"),
    ("bridal_shower", "Bridal Shower"),
    ("engagement_party", "Engagement Party"),
    ("welcome_party", "Welcome Party"),
    ("day_after_brunch", "Day-After Brunch"),
    ("other", "Other"),
)

EVENT_TYPE_VALUES: frozenset[str] = frozenset(v for v, _ in EVENT_TYPES)

# Budget categories seeded for a new wedding
DEFAULT_BUDGET_CATEGORIES: tuple[str, ...] = (
    "Venue",
    "Catering",
    "Photography",
    "Videography",
    "Florist",
    "Music/DJ",
    "Cake & Desserts",
    "Attire",
    "Hair & Makeup",
    "Decor",
    "Stationery",
    "Transportation",
    "Officiant",
    "Gifts & Favors",
    "Honeymoon",
    "Miscellaneous",
)

# Guest priorities accepted by the CSV importer
GUEST_PRIORITIES: tuple[str, ...] = ("Must", "Like", "Maybe")
DEFAULT_GUEST_PRIORITY = "Must"

# Wedding membership roles
ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"
