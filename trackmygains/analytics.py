"""
TrackMyGains — Consistency Analytics Engine

Rebuilds adherence history from logged sessions + the recurring weekly plan.
Every function here is pure: records in, new records / DataFrames out.
"Today" is always passed in, never read from the clock.
"""
import calendar
import math

import numpy as np
import pandas as pd

from trackmygains.config import (
    DEFAULT_LOOKBACK_DAYS,
    TIMEZONE,
    TREND_WEEKS,
    WEEKS_PER_PAGE,
    Weekday,
    get_muscle_group,
)


# ═══════════════════════════════════════════════════════════════════════
# 0. DATE & RECORD HELPERS
# ═══════════════════════════════════════════════════════════════════════

def to_local_day(value, tz: str = None) -> pd.Timestamp:
    """
    Normalize a date-ish value to a naive local-midnight Timestamp.

    Timezone-aware inputs (e.g. "2024-01-15T23:30:00Z") are converted to `tz`
    before the time is dropped. Naive inputs are taken as already local.
    Raises ValueError on anything unparseable; aggregates are never
    built on a bad date.
    """
    ts = pd.Timestamp(value)
    if pd.isna(ts):
        raise ValueError(f"Invalid date: {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert(tz or TIMEZONE).tz_localize(None)
    return ts.normalize()


def weekday_name(value, tz: str = None) -> str:
    return Weekday(to_local_day(value, tz).weekday()).label


def week_start(value, tz: str = None) -> pd.Timestamp:
    """Monday of the value's week (Sunday rolls back 6 days)."""
    day = to_local_day(value, tz)
    return day - pd.Timedelta(days=day.weekday())


def percentage(part, whole, scale: int = 100) -> int:
    """
    round(scale * part / whole), half-up; 0 for empty or NaN.
    scale=1 gives a plain rounded average (sets/reps per appearance).
    """
    if not whole:
        return 0
    value = scale * part / whole
    if np.isnan(value):
        return 0
    return int(math.floor(value + 0.5))


def _exercises(record) -> list:
    """Exercise list of a plan/session; anything malformed counts as empty."""
    if not record:
        return []
    exs = record.get("exercises")
    if not isinstance(exs, (list, tuple)):
        return []
    return [ex for ex in exs if isinstance(ex, dict)]


def is_completed(exercise: dict) -> bool:
    """Absent `completed` means done; only an explicit False disqualifies."""
    return exercise.get("completed") is not False


# ═══════════════════════════════════════════════════════════════════════
# 1. PLAN RESOLVER & SESSION MATCHER
# ═══════════════════════════════════════════════════════════════════════

def resolve_plan(date, weekly_plan: dict, tz: str = None) -> dict | None:
    """
    Actionable day plan for a date, or None.

    None covers all three "nothing to do" cases: weekday missing from the
    plan, rest day, or no exercises.
    """
    if not weekly_plan:
        return None
    plan = weekly_plan.get(weekday_name(date, tz))
    if not plan or plan.get("is_rest_day") or not _exercises(plan):
        return None
    return plan


def scheduled_for_day(date, weekly_plan: dict, tz: str = None) -> dict | None:
    """Calendar variant: rest days are returned too (they get their own cell style)."""
    if not weekly_plan:
        return None
    label = weekday_name(date, tz)
    plan = weekly_plan.get(label)
    if plan and (_exercises(plan) or plan.get("is_rest_day")):
        return {**plan, "day_name": label}
    return None


def sessions_for_day(date, sessions: list, tz: str = None) -> list[dict]:
    target = to_local_day(date, tz)
    return [s for s in sessions or [] if to_local_day(s["date"], tz) == target]


def find_session(date, sessions: list, tz: str = None) -> dict | None:
    """First session on the same local calendar day, in input order."""
    target = to_local_day(date, tz)
    for s in sessions or []:
        if to_local_day(s["date"], tz) == target:
            return s
    return None


def _index_sessions(sessions: list, tz: str = None) -> dict:
    """day -> first session of that day; same winner as find_session."""
    by_day = {}
    for s in sessions:
        by_day.setdefault(to_local_day(s["date"], tz), s)
    return by_day


# ═══════════════════════════════════════════════════════════════════════
# 2. HISTORY SYNTHESIZER
# ═══════════════════════════════════════════════════════════════════════

def _synthesize_entry(day: pd.Timestamp, plan: dict, is_today: bool) -> dict:
    return {
        "id": f"missed-{day:%Y-%m-%d}",
        "date": day,
        "is_missed": not is_today,
        "is_pending": is_today,
        "title": plan.get("title") or "Missed Workout",
        "exercises": [
            {
                "name": ex.get("name", ""),
                "sets": ex.get("sets"),
                "reps": ex.get("reps"),
                "weight": ex.get("weight") or 0,
                "completed": False,
                "muscle_group": ex.get("muscle_group") or get_muscle_group(ex.get("name")),
            }
            for ex in _exercises(plan)
        ],
    }


def synthesize_history(sessions: list, weekly_plan: dict, today, tz: str = None) -> list[dict]:
    """
    One entry per resolved day from the first log (or a 28-day lookback)
    through today, oldest first.

    Per day: a real session with exercises wins; otherwise a planned,
    non-rest day becomes a pending entry (today) or a missed entry (past).
    Rest days, unplanned days and empty sessions on unplanned days emit
    nothing. Days after today are never visited.
    """
    today = to_local_day(today, tz)
    sessions = list(sessions or [])
    by_day = _index_sessions(sessions, tz)

    if by_day:
        start = min(by_day)
    else:
        start = today - pd.Timedelta(days=DEFAULT_LOOKBACK_DAYS)

    history = []
    for day in pd.date_range(start, today, freq="D"):
        session = by_day.get(day)
        # An empty session doesn't count as having trained
        if session is not None and _exercises(session):
            history.append(session)
            continue
        plan = resolve_plan(day, weekly_plan)
        if plan is None:
            continue
        history.append(_synthesize_entry(day, plan, is_today=day == today))
    return history


# ═══════════════════════════════════════════════════════════════════════
# 3. WEEK AGGREGATOR
# ═══════════════════════════════════════════════════════════════════════

def history_to_dataframe(entries: list, tz: str = None) -> pd.DataFrame:
    """
    Flatten history entries to one row per exercise per day.

    Boolean helper columns drive the weekly math:
    - counted:   slot counts toward the week total (not pending)
    - is_real:   a logged session (not missed, not pending)
    - slot_done: real and not explicitly marked incomplete
    """
    rows = []
    for entry in entries or []:
        day = to_local_day(entry["date"], tz)
        is_missed = bool(entry.get("is_missed"))
        is_pending = bool(entry.get("is_pending"))
        is_real = not is_missed and not is_pending
        for ex in _exercises(entry):
            name = str(ex.get("name") or "").strip()
            rows.append({
                "date": day,
                "week_start": day - pd.Timedelta(days=day.weekday()),
                "entry_id": entry.get("id"),
                "title": entry.get("title", ""),
                "exercise": name,
                "muscle_group": get_muscle_group(name),
                "sets": ex.get("sets"),
                "reps": ex.get("reps"),
                "weight": ex.get("weight"),
                "is_missed": is_missed,
                "is_pending": is_pending,
                "is_real": is_real,
                "counted": not is_pending,
                "slot_done": is_real and is_completed(ex),
            })

    df = pd.DataFrame(rows)
    if df.empty:
        return df
    for col in ("sets", "reps"):
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0).astype(int)
    df["weight"] = pd.to_numeric(df["weight"], errors="coerce").fillna(0.0)
    return df


def _exercise_stats(df: pd.DataFrame) -> pd.DataFrame:
    """Per (week, exercise) stats, exercises in first-seen order of `df`."""
    df = df.assign(
        real_sets=df["sets"].where(df["is_real"], 0),
        real_reps=df["reps"].where(df["is_real"], 0),
    )
    return (
        df.groupby(["week_start", "exercise"], sort=False)
        .agg(
            muscle_group=("muscle_group", "first"),
            planned_sets=("sets", "first"),
            planned_reps=("reps", "first"),
            completed_sets=("real_sets", "sum"),
            completed_reps=("real_reps", "sum"),
            times_completed=("slot_done", "sum"),
            count=("counted", "sum"),
            missed_count=("is_missed", "sum"),
        )
        .reset_index()
    )


def aggregate_by_week(entries: list, tz: str = None) -> list[dict]:
    """
    Group history entries into Monday-started week buckets, newest week first.

    Week 1 is the oldest week; numbers are fixed here so callers can reorder
    freely without re-deriving them.
    """
    if not entries:
        return []

    ordered = sorted(entries, key=lambda e: to_local_day(e["date"], tz), reverse=True)

    weeks = {}
    for entry in ordered:
        key = week_start(entry["date"], tz)
        week = weeks.setdefault(key, {
            "week_start": key,
            "sessions": [],
            "total_exercises": 0,
            "completed_exercises": 0,
            "exercises": [],
        })
        week["sessions"].append(entry)

    df = history_to_dataframe(ordered, tz)
    if not df.empty:
        totals = df.groupby("week_start").agg(
            total=("counted", "sum"), completed=("slot_done", "sum"),
        )
        for key, row in totals.iterrows():
            weeks[key]["total_exercises"] = int(row["total"])
            weeks[key]["completed_exercises"] = int(row["completed"])

        for _, row in _exercise_stats(df).iterrows():
            count = int(row["count"])
            weeks[row["week_start"]]["exercises"].append({
                "name": row["exercise"],
                "muscle_group": row["muscle_group"],
                "planned_sets": int(row["planned_sets"]),
                "planned_reps": int(row["planned_reps"]),
                "completed_sets": int(row["completed_sets"]),
                "completed_reps": int(row["completed_reps"]),
                "times_completed": int(row["times_completed"]),
                "count": count,
                "missed_count": int(row["missed_count"]),
                "completion_rate": percentage(int(row["times_completed"]), count),
                "avg_sets": percentage(int(row["completed_sets"]), count, scale=1),
                "avg_reps": percentage(int(row["completed_reps"]), count, scale=1),
            })

    buckets = sorted(weeks.values(), key=lambda w: w["week_start"], reverse=True)
    n_weeks = len(buckets)
    for idx, week in enumerate(buckets):
        week["week_number"] = n_weeks - idx
        week["consistency_score"] = percentage(week["completed_exercises"], week["total_exercises"])
        week["missed_sessions_count"] = sum(1 for s in week["sessions"] if s.get("is_missed"))
    return buckets


def consistency_history(sessions: list, weekly_plan: dict, today, tz: str = None) -> list[dict]:
    """synthesize_history + aggregate_by_week in one call."""
    return aggregate_by_week(synthesize_history(sessions, weekly_plan, today, tz), tz)


# ═══════════════════════════════════════════════════════════════════════
# 4. EXERCISE INDEX & WEEK VIEWS
# ═══════════════════════════════════════════════════════════════════════

def _muscle_filter_active(muscle_group) -> bool:
    return bool(muscle_group) and muscle_group != "all"


def exercise_index(weeks: list, muscle_group: str = None) -> list[str]:
    """Sorted unique exercise names across all weeks, for filter dropdowns."""
    names = set()
    for week in weeks or []:
        for ex in week["exercises"]:
            if not _muscle_filter_active(muscle_group) or get_muscle_group(ex["name"]) == muscle_group:
                names.add(ex["name"])
    return sorted(names)


def filter_week(week: dict, muscle_group: str = None, exercise: str = None, query: str = None) -> dict | None:
    """Copy of `week` with its exercise list narrowed: muscle → exact name → search."""
    if week is None:
        return None
    exs = week["exercises"]
    if _muscle_filter_active(muscle_group):
        exs = [ex for ex in exs if get_muscle_group(ex["name"]) == muscle_group]
    if exercise and exercise != "all":
        exs = [ex for ex in exs if ex["name"] == exercise]
    if query:
        q = query.lower()
        exs = [ex for ex in exs if q in ex["name"].lower()]
    return {**week, "exercises": exs}


def select_week(weeks: list, index: int) -> dict | None:
    if not weeks:
        return None
    return weeks[max(0, min(index, len(weeks) - 1))]


def page_count(weeks: list, per_page: int = WEEKS_PER_PAGE) -> int:
    return math.ceil(len(weeks or []) / per_page)


def paginate_weeks(weeks: list, page: int, per_page: int = WEEKS_PER_PAGE) -> list[dict]:
    return list(weeks or [])[page * per_page:(page + 1) * per_page]


def weekly_breakdown(weeks: list) -> pd.DataFrame:
    if not weeks:
        return pd.DataFrame()
    return pd.DataFrame([
        {
            "week_number": w["week_number"],
            "week_start": w["week_start"],
            "total_exercises": w["total_exercises"],
            "completed_exercises": w["completed_exercises"],
            "consistency_score": w["consistency_score"],
            "missed_sessions": w["missed_sessions_count"],
            "sessions_logged": sum(
                1 for s in w["sessions"] if not s.get("is_missed") and not s.get("is_pending")
            ),
        }
        for w in weeks
    ])


def exercise_breakdown(week: dict) -> pd.DataFrame:
    if not week or not week["exercises"]:
        return pd.DataFrame()
    return pd.DataFrame(week["exercises"])


def missed_workouts(week: dict) -> list[dict]:
    """Missed entries of a week as {date, weekday, title}, for the detail list."""
    if not week:
        return []
    return [
        {"date": s["date"], "weekday": Weekday(to_local_day(s["date"]).weekday()).short, "title": s["title"]}
        for s in week["sessions"]
        if s.get("is_missed")
    ]


# ═══════════════════════════════════════════════════════════════════════
# 5. DASHBOARD
# ═══════════════════════════════════════════════════════════════════════

def consistency_trends(sessions: list, weekly_plan: dict, today, n_weeks: int = TREND_WEEKS,
                       tz: str = None) -> pd.DataFrame:
    """Consistency % of the last `n_weeks` weeks, oldest first, for the trend chart."""
    if not weekly_plan:
        return pd.DataFrame()
    weeks = consistency_history(sessions, weekly_plan, today, tz)
    if not weeks:
        return pd.DataFrame()
    recent = list(reversed(weeks[:n_weeks]))
    return pd.DataFrame([
        {
            "week_start": w["week_start"],
            "name": f"Week of {w['week_start']:%b} {w['week_start'].day}",
            "consistency": w["consistency_score"],
        }
        for w in recent
    ])


def session_progress(session: dict | None) -> int:
    exs = _exercises(session)
    return percentage(sum(1 for ex in exs if is_completed(ex)), len(exs))


def weekly_progress(sessions: list, today, tz: str = None) -> pd.DataFrame:
    """Completion % for each day of the current Monday-started week."""
    monday = week_start(today, tz)
    rows = []
    for day in Weekday:
        date = monday + pd.Timedelta(days=int(day))
        session = find_session(date, sessions, tz)
        rows.append({"day": day.label, "date": date, "progress": session_progress(session)})
    return pd.DataFrame(rows)


def dashboard_summary(sessions: list, today, tz: str = None) -> dict:
    progress = weekly_progress(sessions, today, tz)
    today_session = find_session(today, sessions, tz)
    exs = _exercises(today_session)
    return {
        "total_logs": sum(
            1 for s in sessions or [] if any(is_completed(ex) for ex in _exercises(s))
        ),
        "weekly_streak": int((progress["progress"] > 0).sum()),
        "today_completed": sum(1 for ex in exs if is_completed(ex)),
        "today_total": len(exs),
        "today_pct": session_progress(today_session),
    }


# ═══════════════════════════════════════════════════════════════════════
# 6. CALENDAR
# ═══════════════════════════════════════════════════════════════════════

def _cell_status(session, scheduled, is_today: bool) -> str:
    if session is not None:
        if all(is_completed(ex) for ex in _exercises(session)):
            return "completed"
        return "in_progress" if is_today else "logged"
    if is_today:
        return "today"
    if scheduled is not None:
        return "rest" if scheduled.get("is_rest_day") else "planned"
    return "empty"


def calendar_month(sessions: list, weekly_plan: dict, year: int, month: int, today,
                   tz: str = None) -> list[dict | None]:
    """
    Month grid cells, Monday-first, with None padding before day 1.

    Cells are computed per day from the session matcher and plan lookup,
    independent of the full-history synthesis.
    """
    today = to_local_day(today, tz)
    first_weekday, n_days = calendar.monthrange(year, month)
    cells = [None] * first_weekday
    for day_num in range(1, n_days + 1):
        date = pd.Timestamp(year=year, month=month, day=day_num)
        day_sessions = sessions_for_day(date, sessions, tz)
        session = day_sessions[0] if day_sessions else None
        scheduled = scheduled_for_day(date, weekly_plan)
        is_today = date == today
        workout = session or scheduled
        muscles = []
        for ex in _exercises(workout):
            mg = ex.get("muscle_group") or get_muscle_group(ex.get("name"))
            if mg not in muscles:
                muscles.append(mg)
        cells.append({
            "day": day_num,
            "date": date,
            "weekday": Weekday(date.weekday()).label,
            "session": session,
            "scheduled": scheduled,
            "is_today": is_today,
            "status": _cell_status(session, scheduled, is_today),
            "title": workout.get("title", "") if workout else "",
            "muscle_groups": muscles[:3],
            "can_mark_complete": session is None and scheduled is not None and is_today,
        })
    return cells
