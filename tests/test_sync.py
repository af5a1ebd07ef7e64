"""
Tests for the Supabase client and the sync orchestrator.
No network: requests.request and the client functions are monkeypatched.
Run: pytest tests/ -v
"""
import pandas as pd
import pytest
import requests

WEDNESDAY = "2024-01-17"


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.content = b"" if payload is None else b"{}"

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


@pytest.fixture
def no_sleep(monkeypatch):
    from trackmygains import supabase_client
    waits = []
    monkeypatch.setattr(supabase_client.time, "sleep", waits.append)
    return waits


def _responses(monkeypatch, *responses):
    """Queue fake responses for requests.request; returns the list of calls."""
    from trackmygains import supabase_client
    queue = list(responses)
    calls = []

    def fake_request(method, url, **kwargs):
        calls.append((method, url, kwargs))
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(supabase_client.requests, "request", fake_request)
    return calls


# ═══════════════════════════════════════════════════════════════════════
# SUPABASE CLIENT
# ═══════════════════════════════════════════════════════════════════════

class TestRequestRetry:

    def test_rate_limit_then_success(self, monkeypatch, no_sleep):
        from trackmygains.supabase_client import RETRY_BACKOFF, _request
        calls = _responses(monkeypatch, FakeResponse(429), FakeResponse(200, [{"id": "s1"}]))
        assert _request("GET", "/sessions") == [{"id": "s1"}]
        assert len(calls) == 2
        assert RETRY_BACKOFF in no_sleep

    def test_server_errors_exhaust_retries(self, monkeypatch, no_sleep):
        from trackmygains.supabase_client import MAX_RETRIES, _request
        calls = _responses(monkeypatch, *[FakeResponse(503) for _ in range(MAX_RETRIES)])
        with pytest.raises(requests.exceptions.HTTPError):
            _request("GET", "/sessions")
        assert len(calls) == MAX_RETRIES

    def test_rate_limit_and_server_error_share_backoff(self, monkeypatch, no_sleep):
        from trackmygains.supabase_client import RATE_LIMIT_DELAY, _request
        _responses(monkeypatch, FakeResponse(429), FakeResponse(502), FakeResponse(200, []))
        assert _request("GET", "/sessions") == []
        assert no_sleep == [RATE_LIMIT_DELAY, 2, 4]

    def test_rate_limit_exhausted_is_retry_error(self, monkeypatch, no_sleep):
        from trackmygains.supabase_client import MAX_RETRIES, _request
        calls = _responses(monkeypatch, *[FakeResponse(429) for _ in range(MAX_RETRIES)])
        with pytest.raises(requests.exceptions.RetryError):
            _request("GET", "/sessions")
        assert len(calls) == MAX_RETRIES

    def test_client_error_not_retried(self, monkeypatch, no_sleep):
        from trackmygains.supabase_client import _request
        calls = _responses(monkeypatch, FakeResponse(404), FakeResponse(200, []))
        with pytest.raises(requests.exceptions.HTTPError):
            _request("GET", "/sessions")
        assert len(calls) == 1

    def test_timeout_retried(self, monkeypatch, no_sleep):
        from trackmygains.supabase_client import _request
        _responses(monkeypatch, requests.exceptions.Timeout(), FakeResponse(200, []))
        assert _request("GET", "/sessions") == []

    def test_empty_body_is_none(self, monkeypatch, no_sleep):
        from trackmygains.supabase_client import _request
        _responses(monkeypatch, FakeResponse(201))
        assert _request("POST", "/sessions", body={}) is None


class TestStoreRecords:

    def test_fetch_sessions_normalized(self, monkeypatch, no_sleep):
        from trackmygains.supabase_client import fetch_sessions
        calls = _responses(monkeypatch, FakeResponse(200, [
            {"id": "s1", "date": WEDNESDAY, "exercises": [{"name": "Squat", "muscleGroup": "Legs"}]},
        ]))
        sessions = fetch_sessions("u1")
        assert sessions[0]["exercises"][0]["muscle_group"] == "Legs"
        assert calls[0][2]["params"]["user_id"] == "eq.u1"

    def test_missing_plan_is_none(self, monkeypatch, no_sleep):
        from trackmygains.supabase_client import fetch_weekly_plan
        _responses(monkeypatch, FakeResponse(200, []))
        assert fetch_weekly_plan("u1") is None

    def test_plan_filled_to_seven_days(self, monkeypatch, no_sleep):
        from trackmygains.supabase_client import fetch_weekly_plan
        _responses(monkeypatch, FakeResponse(200, [{"plan": {"Monday": {"title": "Push", "exercises": []}}}]))
        plan = fetch_weekly_plan("u1")
        assert len(plan) == 7
        assert plan["Monday"]["title"] == "Push"
        assert plan["Sunday"]["is_rest_day"] is True

    def test_session_record_drops_synthesized_flags(self):
        from trackmygains.supabase_client import session_to_record
        record = session_to_record(
            {"id": "s1", "date": pd.Timestamp(WEDNESDAY), "is_missed": False, "is_pending": True, "exercises": []},
            "u1",
        )
        assert record == {"id": "s1", "date": "2024-01-17T00:00:00", "exercises": [], "user_id": "u1"}

    def test_upsert_sends_merge_preference(self, monkeypatch, no_sleep):
        from trackmygains.supabase_client import upsert_weekly_plan
        calls = _responses(monkeypatch, FakeResponse(201))
        upsert_weekly_plan({"Monday": {}}, "u1")
        method, url, kwargs = calls[0]
        assert method == "POST" and url.endswith("/weekly_plan")
        assert kwargs["params"] == {"on_conflict": "user_id"}
        assert kwargs["headers"]["Prefer"].startswith("resolution=merge-duplicates")


# ═══════════════════════════════════════════════════════════════════════
# SYNC ORCHESTRATOR
# ═══════════════════════════════════════════════════════════════════════

@pytest.fixture
def store(monkeypatch):
    """In-memory stand-in for the client functions sync.py calls."""
    from trackmygains import supabase_client
    calls = {"upsert_session": [], "upsert_weekly_plan": [], "insert_weekly_plan": [],
             "delete_session": [], "delete_user_data": []}
    data = {"sessions": [], "plan": None, "fail": set()}

    def recorder(name, result=None):
        def fn(*args):
            if name in data["fail"]:
                raise requests.ConnectionError("store down")
            calls[name].append(args)
            return result
        return fn

    for name in calls:
        monkeypatch.setattr(supabase_client, name, recorder(name))
    monkeypatch.setattr(supabase_client, "fetch_sessions", lambda uid: list(data["sessions"]))
    monkeypatch.setattr(supabase_client, "fetch_weekly_plan", lambda uid: data["plan"])
    return {"calls": calls, "data": data}


def _state(plan_day=None, sessions=None):
    from trackmygains.config import default_weekly_plan
    plan = default_weekly_plan()
    if plan_day:
        day, exercises = plan_day
        plan[day] = {"title": "Legs", "exercises": exercises, "is_rest_day": False}
    return {"sessions": sessions or [], "weekly_plan": plan}


class TestLoadState:

    def test_missing_plan_inserts_default(self, store):
        from trackmygains.config import default_weekly_plan
        from trackmygains.sync import load_state
        state = load_state("u1")
        assert state["weekly_plan"] == default_weekly_plan()
        assert len(store["calls"]["insert_weekly_plan"]) == 1

    def test_existing_plan_kept(self, store):
        from trackmygains.sync import load_state
        store["data"]["plan"] = _state(("Monday", [{"name": "Squat"}]))["weekly_plan"]
        state = load_state("u1")
        assert state["weekly_plan"]["Monday"]["title"] == "Legs"
        assert store["calls"]["insert_weekly_plan"] == []


class TestSaveSession:

    def test_past_session_only_touches_sessions(self, store):
        from trackmygains.sync import save_session
        state = _state(("Monday", [{"name": "Squat", "weight": 100}]))
        session = {"id": "s1", "date": "2024-01-15", "exercises": [{"name": "Squat", "weight": 110}]}
        new = save_session(state, session, "u1", today=WEDNESDAY)
        assert new["sessions"] == [session]
        assert new["weekly_plan"] is state["weekly_plan"]
        assert store["calls"]["upsert_weekly_plan"] == []

    def test_todays_weights_flow_into_plan(self, store):
        from trackmygains.sync import save_session
        state = _state(("Wednesday", [{"name": "Squat", "weight": 100}]))
        session = {"id": "s1", "date": "2024-01-17T19:00:00", "exercises": [{"name": "Squat", "weight": 120}]}
        new = save_session(state, session, "u1", today=WEDNESDAY)
        assert new["weekly_plan"]["Wednesday"]["exercises"][0]["weight"] == 120
        assert len(store["calls"]["upsert_weekly_plan"]) == 1
        assert len(store["calls"]["upsert_session"]) == 1

    def test_store_failure_keeps_state(self, store):
        from trackmygains.sync import save_session
        store["data"]["fail"].add("upsert_session")
        state = _state()
        new = save_session(state, {"id": "s1", "date": WEDNESDAY, "exercises": []}, "u1", today=WEDNESDAY)
        assert new is state


class TestSaveWeeklyPlan:

    def test_plan_edit_flows_into_todays_session(self, store):
        from trackmygains.sync import save_weekly_plan
        session = {"id": "s1", "date": WEDNESDAY, "exercises": [
            {"name": "Squat", "sets": 3, "reps": 5, "weight": 100, "completed": True},
        ]}
        state = _state(("Wednesday", [{"name": "Squat", "sets": 3, "reps": 5, "weight": 100}]), [session])
        plan = _state(("Wednesday", [{"name": "Squat", "sets": 3, "reps": 5, "weight": 110}]))["weekly_plan"]
        new = save_weekly_plan(state, plan, "u1", today=WEDNESDAY)
        assert new["weekly_plan"] is plan
        assert new["sessions"][0]["exercises"][0]["weight"] == 110
        assert len(store["calls"]["upsert_session"]) == 1
        assert len(store["calls"]["upsert_weekly_plan"]) == 1

    def test_no_session_today_only_saves_plan(self, store):
        from trackmygains.sync import save_weekly_plan
        state = _state()
        plan = _state(("Wednesday", [{"name": "Squat"}]))["weekly_plan"]
        new = save_weekly_plan(state, plan, "u1", today=WEDNESDAY)
        assert new["sessions"] == []
        assert store["calls"]["upsert_session"] == []

    def test_store_failure_keeps_state(self, store):
        from trackmygains.sync import save_weekly_plan
        store["data"]["fail"].add("upsert_weekly_plan")
        state = _state()
        assert save_weekly_plan(state, _state(("Friday", []))["weekly_plan"], "u1", today=WEDNESDAY) is state


class TestDeleteAndReset:

    def test_delete_session(self, store):
        from trackmygains.sync import delete_session
        state = _state(sessions=[{"id": "a", "date": WEDNESDAY, "exercises": []}])
        assert delete_session(state, "a", "u1")["sessions"] == []
        store["data"]["fail"].add("delete_session")
        assert delete_session(state, "a", "u1") is state

    def test_reset_data(self, store):
        from trackmygains.config import default_weekly_plan
        from trackmygains.sync import reset_data
        state = _state(("Monday", [{"name": "Squat"}]), [{"id": "a", "date": WEDNESDAY, "exercises": []}])
        new = reset_data(state, "u1")
        assert new == {"sessions": [], "weekly_plan": default_weekly_plan()}
        assert store["calls"]["delete_user_data"] == [("u1",)]


class TestRunReport:

    def test_prints_missed_mondays(self, store, capsys):
        from trackmygains.sync import run_report
        plan = _state(("Monday", [{"name": "Bench Press"}]))["weekly_plan"]
        plan["Monday"]["title"] = "Push Day"
        store["data"]["plan"] = plan
        result = run_report("u1", today=WEDNESDAY)
        assert result == {"weeks": 4, "sessions": 0, "missed": 4}
        out = capsys.readouterr().out
        assert "❌ Mon: Push Day" in out
        assert "0%" in out

    def test_nothing_planned(self, store):
        from trackmygains.sync import run_report
        store["data"]["plan"] = _state()["weekly_plan"]
        assert run_report("u1", today=WEDNESDAY) == {"weeks": 0, "sessions": 0, "missed": 0}
