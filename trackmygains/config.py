"""
TrackMyGains — Configuration

Weekday keys, muscle-group classification and store credentials.

ALL weekday lookups go through the Weekday enum below. Plan keys are the
enum labels ("Monday".."Sunday"), never a locale-formatted date string.
"""
import os
from enum import IntEnum

import pandas as pd

# ── Record store (Supabase / PostgREST) ──────────────────────────────
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_KEY = os.environ.get("SUPABASE_KEY", "")
# Optional user JWT; falls back to the anon key when empty
SUPABASE_ACCESS_TOKEN = os.environ.get("SUPABASE_ACCESS_TOKEN", "")
USER_ID = os.environ.get("TRACKMYGAINS_USER_ID", "")

# ── Program Config ───────────────────────────────────────────────────
TIMEZONE = os.environ.get("TRACKMYGAINS_TZ", "UTC")
DEFAULT_LOOKBACK_DAYS = 28  # history window when nothing has been logged yet
WEEKS_PER_PAGE = 4
TREND_WEEKS = 5


class Weekday(IntEnum):
    """Monday=0 .. Sunday=6, same as datetime.weekday()."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def short(self) -> str:
        return self.label[:3]

    @classmethod
    def from_label(cls, label: str) -> "Weekday":
        return cls[label.upper()]


WEEKDAYS = [d.label for d in Weekday]


def local_today(tz: str = None) -> pd.Timestamp:
    """Current calendar day in the configured timezone, as naive midnight."""
    return pd.Timestamp.now(tz=tz or TIMEZONE).tz_localize(None).normalize()


def default_weekly_plan() -> dict:
    """Fresh 7-day plan, every day a rest day."""
    return {
        day: {"title": "Rest Day", "exercises": [], "is_rest_day": True}
        for day in WEEKDAYS
    }


# ═════════════════════════════════════════════════════════════════════
# MUSCLE GROUPS
#
# Keyword rules are checked top to bottom; the first hit wins.
# "raise" sits under Shoulder, so "Leg Raise" is a Shoulder exercise.
# ═════════════════════════════════════════════════════════════════════

MUSCLE_GROUPS = [
    "Shoulder", "Back", "Chest", "Tricep", "Bicep",
    "Legs", "Core", "Forearm", "Stretches",
]

MUSCLE_GROUP_RULES = [
    ("Shoulder", ("shoulder", "overhead", "raise", "military")),
    ("Back", ("row", "pull", "back", "lat", "chin")),
    ("Chest", ("bench", "chest", "push", "dip", "fly")),
    ("Tricep", ("tricep", "extension", "skull")),
    ("Bicep", ("curl", "bicep")),
    ("Legs", ("squat", "leg", "lunge", "calf", "deadlift")),
    ("Core", ("plank", "crunch", "sit", "abs", "core")),
    ("Forearm", ("wrist", "forearm")),
    ("Stretches", ("stretch", "yoga", "mobility")),
]

DEFAULT_MUSCLE_GROUP = "Core"

MUSCLE_GROUP_COLORS = {
    "Shoulder": "#f97316",
    "Back": "#3b82f6",
    "Chest": "#ef4444",
    "Tricep": "#f59e0b",
    "Bicep": "#d946ef",
    "Legs": "#22c55e",
    "Core": "#64748b",
    "Forearm": "#78716c",
    "Stretches": "#0ea5e9",
}

COMMON_EXERCISES = [
    "Bench Press", "Incline Bench Press", "Dips", "Push Ups",
    "Squat", "Deadlift", "Leg Press", "Lunges", "Calf Raise",
    "Pull Ups", "Lat Pulldown", "Barbell Row", "Face Pulls",
    "Overhead Press", "Lateral Raise", "Front Raise",
    "Bicep Curl", "Hammer Curl", "Tricep Extension", "Skullcrushers",
    "Plank", "Crunches", "Leg Raise", "Russian Twist",
    "Running", "Cycling", "Jump Rope", "Stretching",
]


def get_muscle_group(name: str) -> str:
    """Classify an exercise by name. Total: unknown names fall back to Core."""
    n = (name or "").lower()
    for group, keywords in MUSCLE_GROUP_RULES:
        if any(k in n for k in keywords):
            return group
    return DEFAULT_MUSCLE_GROUP
