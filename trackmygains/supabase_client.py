"""
TrackMyGains — Supabase (PostgREST) Client

Tables:
- sessions     (id, user_id, title, date, exercises jsonb, created_at)
- weekly_plan  (user_id unique, plan jsonb)
"""
import time

import pandas as pd
import requests

from trackmygains.config import SUPABASE_ACCESS_TOKEN, SUPABASE_KEY, SUPABASE_URL
from trackmygains.schedule import normalize_weekly_plan
from trackmygains.sessions import normalize_session

BASE_URL = f"{SUPABASE_URL.rstrip('/')}/rest/v1"
HEADERS = {
    "apikey": SUPABASE_KEY,
    "Authorization": f"Bearer {SUPABASE_ACCESS_TOKEN or SUPABASE_KEY}",
    "Content-Type": "application/json",
}

RATE_LIMIT_DELAY = 0.1  # seconds between requests
MAX_RETRIES = 3
RETRY_BACKOFF = 2  # exponential backoff multiplier


def _backoff(attempt: int, reason: str):
    wait = RETRY_BACKOFF ** attempt
    print(f"  ⏳ Supabase {reason}, retrying in {wait}s (attempt {attempt}/{MAX_RETRIES})")
    time.sleep(wait)


def _request(method: str, endpoint: str, params: dict = None, body=None, prefer: str = None):
    """
    Request to PostgREST with rate limiting. Returns parsed JSON or None.

    429, 5xx and timeouts back off exponentially. A 5xx or timeout on the
    last attempt is re-raised; exhausting the attempts on 429 is a RetryError.
    """
    headers = dict(HEADERS)
    if prefer:
        headers["Prefer"] = prefer
    time.sleep(RATE_LIMIT_DELAY)
    for attempt in range(1, MAX_RETRIES + 1):
        try:
            r = requests.request(
                method, f"{BASE_URL}{endpoint}", headers=headers,
                params=params or {}, json=body, timeout=15,
            )
        except requests.exceptions.Timeout:
            if attempt == MAX_RETRIES:
                raise
            _backoff(attempt, "timeout")
            continue

        if r.status_code == 429 or r.status_code >= 500:
            if attempt < MAX_RETRIES:
                _backoff(attempt, f"HTTP {r.status_code}")
                continue
            if r.status_code == 429:
                break
        r.raise_for_status()
        return r.json() if r.content else None
    raise requests.exceptions.RetryError(f"Supabase API still rate limited after {MAX_RETRIES} attempts")


def _json_value(value):
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    return value


def session_to_record(session: dict, user_id: str) -> dict:
    """Store row for a session. Synthesized-only flags are dropped."""
    record = {
        k: _json_value(v) for k, v in session.items()
        if k not in ("is_missed", "is_pending")
    }
    record["user_id"] = user_id
    return record


# ── Sessions ─────────────────────────────────────────────────────────

def fetch_sessions(user_id: str) -> list[dict]:
    """All sessions of a user, in store order."""
    rows = _request("GET", "/sessions", {"select": "*", "user_id": f"eq.{user_id}"}) or []
    return [normalize_session(r) for r in rows]


def upsert_session(session: dict, user_id: str):
    return _request(
        "POST", "/sessions", body=session_to_record(session, user_id),
        prefer="resolution=merge-duplicates,return=minimal",
    )


def delete_session(session_id: str):
    return _request("DELETE", "/sessions", {"id": f"eq.{session_id}"})


# ── Weekly plan ──────────────────────────────────────────────────────

def fetch_weekly_plan(user_id: str) -> dict | None:
    """The user's plan, normalized to 7 days; None when no row exists yet."""
    rows = _request("GET", "/weekly_plan", {"select": "plan", "user_id": f"eq.{user_id}"}) or []
    if not rows:
        return None
    return normalize_weekly_plan(rows[0].get("plan"))


def upsert_weekly_plan(plan: dict, user_id: str):
    return _request(
        "POST", "/weekly_plan", params={"on_conflict": "user_id"},
        body={"user_id": user_id, "plan": plan},
        prefer="resolution=merge-duplicates,return=minimal",
    )


def insert_weekly_plan(plan: dict, user_id: str):
    return _request(
        "POST", "/weekly_plan", body={"user_id": user_id, "plan": plan},
        prefer="return=minimal",
    )


def delete_user_data(user_id: str):
    """Remove every session and the plan of a user."""
    _request("DELETE", "/sessions", {"user_id": f"eq.{user_id}"})
    _request("DELETE", "/weekly_plan", {"user_id": f"eq.{user_id}"})
