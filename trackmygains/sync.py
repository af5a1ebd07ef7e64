"""
TrackMyGains — Sync Orchestrator

Explicitly sequenced state changes: apply locally → persist → roll back
the local change if the store rejects it. State is a plain dict
{"sessions": [...], "weekly_plan": {...}} and is never mutated in place.

Report: python -m trackmygains.sync [--weeks N]
"""
import sys

import requests

from trackmygains import supabase_client
from trackmygains.analytics import consistency_history, missed_workouts, to_local_day, weekday_name
from trackmygains.config import TREND_WEEKS, USER_ID, default_weekly_plan, local_today
from trackmygains.sessions import (
    is_same_day,
    remove_session,
    sync_plan_from_session,
    sync_session_from_plan,
    upsert_session,
)


def load_state(user_id: str) -> dict:
    """Fetch sessions + plan. A user without a plan row gets the default one inserted."""
    sessions = supabase_client.fetch_sessions(user_id)
    plan = supabase_client.fetch_weekly_plan(user_id)
    if plan is None:
        print("   No weekly plan found, creating default (all rest days)")
        plan = default_weekly_plan()
        supabase_client.insert_weekly_plan(plan, user_id)
    return {"sessions": sessions, "weekly_plan": plan}


def save_session(state: dict, session: dict, user_id: str, today=None, sync_to_plan: bool = True) -> dict:
    """
    Apply a session edit and persist it.

    When the session is today's and `sync_to_plan` is set, logged weights
    flow back into today's plan day.
    """
    today = to_local_day(today) if today is not None else local_today()
    new_state = {**state, "sessions": upsert_session(state["sessions"], session)}

    try:
        supabase_client.upsert_session(session, user_id)
    except requests.RequestException as e:
        print(f"  ❌ Error saving session {session.get('id')}: {e}")
        return state

    if sync_to_plan and is_same_day(session["date"], today):
        new_plan = sync_plan_from_session(new_state["weekly_plan"], session, today)
        if new_plan != new_state["weekly_plan"]:
            new_state = save_weekly_plan(new_state, new_plan, user_id, today, sync_to_session=False)
    return new_state


def save_weekly_plan(state: dict, plan: dict, user_id: str, today=None, sync_to_session: bool = True) -> dict:
    """
    Apply a plan edit and persist it.

    With `sync_to_session`, an already-logged session for today picks up the
    edited weights/sets/reps and any newly planned exercises.
    """
    today = to_local_day(today) if today is not None else local_today()
    new_state = {**state, "weekly_plan": plan}

    try:
        supabase_client.upsert_weekly_plan(plan, user_id)
    except requests.RequestException as e:
        print(f"  ❌ Failed to sync plan: {e}")
        return state

    if sync_to_session:
        day_plan = plan.get(weekday_name(today))
        todays = [s for s in new_state["sessions"] if is_same_day(s["date"], today)]
        if day_plan and todays:
            updated, changed = sync_session_from_plan(todays[0], day_plan)
            if changed:
                new_state = save_session(new_state, updated, user_id, today, sync_to_plan=False)
    return new_state


def delete_session(state: dict, session_id: str, user_id: str) -> dict:
    new_state = {**state, "sessions": remove_session(state["sessions"], session_id)}
    try:
        supabase_client.delete_session(session_id)
    except requests.RequestException as e:
        print(f"  ❌ Delete error: {e}")
        return state
    return new_state


def reset_data(state: dict, user_id: str) -> dict:
    """Wipe history + plan. Local state only resets once the store confirms."""
    try:
        supabase_client.delete_user_data(user_id)
    except requests.RequestException as e:
        print(f"  ❌ Reset error: {e}")
        return state

    plan = default_weekly_plan()
    try:
        supabase_client.insert_weekly_plan(plan, user_id)
    except requests.RequestException as e:
        print(f"  ⚠️  Default plan not re-created: {e}")
    return {"sessions": [], "weekly_plan": plan}


def run_report(user_id: str = USER_ID, today=None, weeks: int = TREND_WEEKS) -> dict:
    """
    Consistency report:
    1. Load sessions + plan from the store
    2. Synthesize history and aggregate by week
    3. Print the last `weeks` weeks with their missed workouts
    """
    today = to_local_day(today) if today is not None else local_today()
    print("🔄 TrackMyGains Report — Starting...")
    print(f"   Today: {today.date()}")

    print("\n📥 Loading sessions and weekly plan...")
    state = load_state(user_id)
    print(f"   Found {len(state['sessions'])} sessions")

    history = consistency_history(state["sessions"], state["weekly_plan"], today)
    if not history:
        print("   Nothing planned or logged yet. Done.")
        return {"weeks": 0, "sessions": len(state["sessions"]), "missed": 0}

    print(f"\n{'='*50}")
    print("📊 Weekly Consistency:")
    for week in history[:weeks]:
        print(
            f"   Week {week['week_number']:>3} ({week['week_start'].date()}): "
            f"{week['consistency_score']:>3}% "
            f"({week['completed_exercises']}/{week['total_exercises']} exercises)"
        )
        for missed in missed_workouts(week):
            print(f"      ❌ {missed['weekday']}: {missed['title']}")

    total_missed = sum(w["missed_sessions_count"] for w in history)
    return {"weeks": len(history), "sessions": len(state["sessions"]), "missed": total_missed}


if __name__ == "__main__":
    n_weeks = TREND_WEEKS
    if "--weeks" in sys.argv:
        n_weeks = int(sys.argv[sys.argv.index("--weeks") + 1])

    if not USER_ID:
        print("❌ TRACKMYGAINS_USER_ID is not set")
        sys.exit(1)

    try:
        result = run_report(USER_ID, weeks=n_weeks)
    except Exception as e:
        print(f"\n❌ Report FAILED: {e}")
        sys.exit(1)

    print(f"\nDone. {result['weeks']} weeks, {result['missed']} missed workouts.")
