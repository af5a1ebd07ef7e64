"""
TrackMyGains — Weekly Plan Editing

Pure edits on the 7-day plan. Every function returns a new plan dict;
the argument is never touched.
"""
from trackmygains.config import WEEKDAYS, Weekday, default_weekly_plan, get_muscle_group

# Legacy camelCase keys still found in old store rows
LEGACY_KEYS = {
    "isRestDay": "is_rest_day",
    "muscleGroup": "muscle_group",
    "isMissed": "is_missed",
    "isPending": "is_pending",
}

NUMERIC_FIELDS = ("sets", "reps", "weight")


def rename_legacy_keys(record: dict) -> dict:
    return {LEGACY_KEYS.get(k, k): v for k, v in record.items()}


def clamp_number(value) -> float | int:
    """Coerce to a non-negative number; junk becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number:  # NaN
        return 0
    number = max(0.0, number)
    return int(number) if number.is_integer() else number


def _day_key(day) -> str:
    if isinstance(day, Weekday):
        return day.label
    return Weekday.from_label(str(day)).label


def normalize_exercise(exercise: dict) -> dict:
    ex = rename_legacy_keys(exercise)
    if not ex.get("muscle_group"):
        ex["muscle_group"] = get_muscle_group(ex.get("name"))
    return ex


def normalize_weekly_plan(plan: dict | None) -> dict:
    """
    Fill the plan out to exactly the 7 weekday keys.

    Missing days become rest days; missing fields get their defaults;
    exercises without a muscle group are classified from their name.
    """
    result = default_weekly_plan()
    for day in WEEKDAYS:
        raw = (plan or {}).get(day)
        if not isinstance(raw, dict):
            continue
        day_plan = rename_legacy_keys(raw)
        exercises = day_plan.get("exercises")
        if not isinstance(exercises, list):
            exercises = []
        result[day] = {
            **day_plan,
            "title": day_plan.get("title") or "",
            "is_rest_day": bool(day_plan.get("is_rest_day", False)),
            "exercises": [normalize_exercise(ex) for ex in exercises if isinstance(ex, dict)],
        }
    return result


def _replace_day(plan: dict, day, **changes) -> dict:
    key = _day_key(day)
    return {**plan, key: {**plan[key], **changes}}


def add_exercise(plan: dict, day, exercise: dict = None) -> dict:
    new_ex = exercise or {"name": "New Exercise", "sets": 3, "reps": 10, "weight": 0, "muscle_group": "Core"}
    key = _day_key(day)
    return _replace_day(plan, key, exercises=[*plan[key]["exercises"], dict(new_ex)])


def remove_exercise(plan: dict, day, index: int) -> dict:
    key = _day_key(day)
    exercises = [ex for i, ex in enumerate(plan[key]["exercises"]) if i != index]
    return _replace_day(plan, key, exercises=exercises)


def update_exercise(plan: dict, day, index: int, field: str, value) -> dict:
    """Set one field of one planned exercise. Renaming re-derives the muscle group."""
    key = _day_key(day)
    exercises = list(plan[key]["exercises"])
    ex = dict(exercises[index])
    if field == "name":
        ex["name"] = value
        ex["muscle_group"] = get_muscle_group(value)
    elif field in NUMERIC_FIELDS:
        ex[field] = clamp_number(value)
    else:
        ex[field] = value
    exercises[index] = ex
    return _replace_day(plan, key, exercises=exercises)


def update_day_title(plan: dict, day, title: str) -> dict:
    return _replace_day(plan, day, title=title)


def set_rest_day(plan: dict, day, is_rest_day: bool = True) -> dict:
    return _replace_day(plan, day, is_rest_day=bool(is_rest_day))
