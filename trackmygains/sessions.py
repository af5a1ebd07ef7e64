"""
TrackMyGains — Session Building

Creating sessions from plan days, editing logged exercises, and keeping
today's session and today's plan day in step. Pure functions only; the
store round-trip lives in sync.py.
"""
import uuid

from trackmygains.analytics import find_session, to_local_day, weekday_name
from trackmygains.schedule import NUMERIC_FIELDS, clamp_number, rename_legacy_keys
from trackmygains.config import TIMEZONE, get_muscle_group


def normalize_session(record: dict) -> dict:
    session = rename_legacy_keys(record)
    exercises = session.get("exercises")
    if not isinstance(exercises, list):
        exercises = []
    session["exercises"] = [rename_legacy_keys(ex) for ex in exercises if isinstance(ex, dict)]
    return session


def session_from_plan(date, plan: dict, completed: bool = False, keep_weight: bool = True,
                      session_id: str = None, tz: str = None) -> dict:
    """
    Clone a day plan into a new session dated `date`.

    The date is stored as local midnight with its UTC offset, so a
    timestamptz column reads it back on the same local calendar day.
    """
    sid = session_id or str(uuid.uuid4())
    day = to_local_day(date, tz).tz_localize(tz or TIMEZONE, nonexistent="shift_forward")
    return {
        "id": sid,
        "date": day.isoformat(),
        "title": plan.get("title", ""),
        "exercises": [
            {
                **ex,
                "id": f"ex-{i}-{sid[:8]}",
                "weight": (ex.get("weight") or 0) if keep_weight else 0,
                "completed": completed,
            }
            for i, ex in enumerate(plan.get("exercises") or [])
        ],
    }


def today_workout(sessions: list, weekly_plan: dict, today, tz: str = None) -> dict | None:
    """
    Today's session if one is logged (even an empty one), otherwise a fresh,
    unsaved session cloned from today's plan entry with weights zeroed.
    """
    session = find_session(today, sessions, tz)
    if session is not None:
        return session
    plan = (weekly_plan or {}).get(weekday_name(today, tz))
    if not plan:
        return None
    return session_from_plan(today, plan, keep_weight=False, tz=tz)


def mark_complete(date, plan: dict, tz: str = None) -> dict:
    """Calendar "mark as done": the whole plan logged as completed."""
    return session_from_plan(date, plan, completed=True, tz=tz)


def upsert_session(sessions: list, session: dict) -> list[dict]:
    if any(s.get("id") == session.get("id") for s in sessions):
        return [session if s.get("id") == session.get("id") else s for s in sessions]
    return [*sessions, session]


def remove_session(sessions: list, session_id) -> list[dict]:
    return [s for s in sessions if s.get("id") != session_id]


def update_logged_exercise(session: dict, index: int, field: str, value) -> dict:
    exercises = list(session.get("exercises") or [])
    ex = dict(exercises[index])
    if field == "name":
        ex["name"] = value
        ex["muscle_group"] = get_muscle_group(value)
    elif field in NUMERIC_FIELDS:
        ex[field] = clamp_number(value)
    else:
        ex[field] = value
    exercises[index] = ex
    return {**session, "exercises": exercises}


def set_exercise_completed(session: dict, index: int, completed: bool = True) -> dict:
    return update_logged_exercise(session, index, "completed", bool(completed))


def is_same_day(a, b, tz: str = None) -> bool:
    return to_local_day(a, tz) == to_local_day(b, tz)


def sync_plan_from_session(plan: dict, session: dict, today, tz: str = None) -> dict:
    """
    Carry today's logged weights back into today's plan day (matched by name).
    Sessions from other days leave the plan as is.
    """
    if not is_same_day(session["date"], today, tz):
        return plan
    day = weekday_name(today, tz)
    day_plan = plan.get(day)
    if not day_plan:
        return plan
    logged = {ex.get("name"): ex for ex in session.get("exercises") or []}
    exercises = []
    for planned in day_plan.get("exercises") or []:
        match = logged.get(planned.get("name"))
        if match is not None and match.get("weight") is not None:
            planned = {**planned, "weight": match["weight"]}
        exercises.append(planned)
    return {**plan, day: {**day_plan, "exercises": exercises}}


def sync_session_from_plan(session: dict, day_plan: dict) -> tuple[dict, bool]:
    """
    Push plan edits into a session: matching exercises take the plan's
    weight/sets/reps, plan exercises missing from the session are appended
    unchecked. Returns (session, changed).
    """
    planned = {p.get("name"): p for p in day_plan.get("exercises") or []}
    changed = False
    exercises = []
    for ex in session.get("exercises") or []:
        p = planned.get(ex.get("name"))
        if p is not None and any(ex.get(f) != p.get(f) for f in NUMERIC_FIELDS):
            changed = True
            ex = {
                **ex,
                "weight": p.get("weight"),
                "sets": p.get("sets"),
                "reps": p.get("reps"),
                "muscle_group": p.get("muscle_group") or ex.get("muscle_group"),
            }
        exercises.append(ex)

    logged_names = {ex.get("name") for ex in session.get("exercises") or []}
    suffix = str(session.get("id", ""))[:8]
    for i, p in enumerate(day_plan.get("exercises") or []):
        if p.get("name") in logged_names:
            continue
        changed = True
        exercises.append({
            **p,
            "id": f"ex-new-{i}-{suffix}",
            "completed": False,
            "weight": p.get("weight") or 0,
        })

    if not changed:
        return session, False
    return {**session, "exercises": exercises}, True
