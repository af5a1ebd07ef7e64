"""
💪 TrackMyGains — Streamlit Dashboard
Run: streamlit run app.py
"""
import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from trackmygains import sync
from trackmygains.analytics import (
    calendar_month, consistency_history, consistency_trends, dashboard_summary,
    exercise_breakdown, exercise_index, filter_week, is_completed, missed_workouts, page_count,
    paginate_weeks, select_week, weekly_breakdown, weekly_progress,
)
from trackmygains.config import (
    COMMON_EXERCISES, MUSCLE_GROUP_COLORS, MUSCLE_GROUPS, USER_ID, WEEKDAYS, WEEKS_PER_PAGE,
    Weekday, local_today,
)
from trackmygains.schedule import (
    add_exercise, remove_exercise, set_rest_day, update_day_title, update_exercise,
)
from trackmygains.sessions import mark_complete, set_exercise_completed, today_workout

# ── Page Config ──────────────────────────────────────────────────────
st.set_page_config(page_title="TrackMyGains", page_icon="💪", layout="wide", initial_sidebar_state="expanded")

PL = dict(
    template="plotly_dark", paper_bgcolor="rgba(0,0,0,0)", plot_bgcolor="rgba(0,0,0,0)",
    margin=dict(l=40, r=20, t=40, b=40),
)

STATUS_ICONS = {
    "completed": "✅", "in_progress": "🟡", "logged": "🟢",
    "today": "📍", "rest": "💤", "planned": "🗓️", "empty": "",
}

user_id = USER_ID or st.secrets.get("TRACKMYGAINS_USER_ID", "")


# ── Data Loading ─────────────────────────────────────────────────────
@st.cache_data(ttl=300)
def load_data(uid: str) -> dict:
    return {"state": sync.load_state(uid), "ts": pd.Timestamp.now()}


if not user_id:
    st.error("TRACKMYGAINS_USER_ID is not set.")
    st.stop()

if "state" not in st.session_state:
    try:
        st.session_state["state"] = load_data(user_id)["state"]
    except Exception as e:
        st.error(f"Error loading data: {e}")
        st.stop()

state = st.session_state["state"]
today = local_today()


def _commit(new_state: dict):
    st.session_state["state"] = new_state
    st.rerun()


# ── Sidebar ──────────────────────────────────────────────────────────
with st.sidebar:
    st.markdown("# 💪 TrackMyGains")
    st.caption(f"Today: {today:%A, %d %b %Y}")
    st.divider()
    if st.button("🔄 Refresh data", use_container_width=True):
        st.cache_data.clear()
        st.session_state.pop("state", None)
        st.rerun()
    st.divider()
    page = st.radio("Section", [
        "📊 Dashboard",
        "📅 Calendar",
        "📈 History",
        "🗓️ Schedule",
    ], label_visibility="collapsed")


# ══════════════════════════════════════════════════════════════════════
# 📊 DASHBOARD
# ══════════════════════════════════════════════════════════════════════
if page == "📊 Dashboard":
    st.markdown("## 📊 Dashboard")
    summary = dashboard_summary(state["sessions"], today)

    c1, c2, c3 = st.columns(3)
    c1.metric("Total Logs", summary["total_logs"])
    c2.metric("Weekly Streak", f"{summary['weekly_streak']} days")
    c3.metric("Today", f"{summary['today_pct']}%", f"{summary['today_completed']}/{summary['today_total']}")

    st.divider()
    workout = today_workout(state["sessions"], state["weekly_plan"], today)
    st.markdown(f"### 🏋️ Today's Workout — {workout['title'] if workout else 'Rest'}")
    if workout and workout.get("exercises"):
        for i, ex in enumerate(workout["exercises"]):
            checked = st.checkbox(
                f"{ex.get('name')} — {ex.get('sets')}×{ex.get('reps')} @ {ex.get('weight', 0)} kg",
                value=is_completed(ex), key=f"today_{i}",
            )
            if checked != is_completed(ex):
                updated = set_exercise_completed(workout, i, checked)
                _commit(sync.save_session(state, updated, user_id, today))
    else:
        st.caption("Nothing scheduled for today.")

    col_left, col_right = st.columns(2)
    with col_left:
        st.markdown("### Weekly Progress")
        wp = weekly_progress(state["sessions"], today)
        fig = go.Figure(go.Bar(
            x=wp["day"].str[:3], y=wp["progress"], marker_color="#22c55e",
            text=wp["progress"].astype(str) + "%", textposition="outside",
        ))
        fig.update_layout(**PL, yaxis_range=[0, 110], height=320, showlegend=False)
        st.plotly_chart(fig, use_container_width=True, key="chart_progress")

    with col_right:
        st.markdown("### Consistency Trend")
        trends = consistency_trends(state["sessions"], state["weekly_plan"], today)
        if not trends.empty:
            fig = px.line(trends, x="name", y="consistency", markers=True)
            fig.update_layout(**PL, yaxis_range=[0, 105], yaxis_title="%", xaxis_title="", height=320)
            st.plotly_chart(fig, use_container_width=True, key="chart_trend")
        else:
            st.caption("No trend yet.")


# ══════════════════════════════════════════════════════════════════════
# 📅 CALENDAR
# ══════════════════════════════════════════════════════════════════════
elif page == "📅 Calendar":
    st.markdown("## 📅 Training Calendar")
    month_start = st.date_input("Month", value=today.date().replace(day=1))
    cells = calendar_month(state["sessions"], state["weekly_plan"], month_start.year, month_start.month, today)

    header = st.columns(7)
    for col, d in zip(header, Weekday):
        col.markdown(f"**{d.short}**")

    for row_start in range(0, len(cells), 7):
        cols = st.columns(7)
        for col, cell in zip(cols, cells[row_start:row_start + 7]):
            if cell is None:
                continue
            with col:
                st.markdown(f"**{cell['day']}** {STATUS_ICONS[cell['status']]}")
                if cell["title"]:
                    st.caption(cell["title"])
                if cell["muscle_groups"]:
                    st.caption(" · ".join(cell["muscle_groups"]))
                if cell["can_mark_complete"]:
                    if st.button("✔ Done", key=f"done_{cell['day']}"):
                        new_session = mark_complete(cell["date"], cell["scheduled"])
                        _commit(sync.save_session(state, new_session, user_id, today))
                if cell["session"] is not None:
                    if st.button("🗑", key=f"del_{cell['day']}"):
                        _commit(sync.delete_session(state, cell["session"]["id"], user_id))


# ══════════════════════════════════════════════════════════════════════
# 📈 HISTORY
# ══════════════════════════════════════════════════════════════════════
elif page == "📈 History":
    st.markdown("## 📈 Workout History")
    weeks = consistency_history(state["sessions"], state["weekly_plan"], today)
    if not weeks:
        st.info("No workout history yet. Start training to see your progress!")
        st.stop()

    query = st.text_input("🔍 Search exercises")
    muscle = st.radio("Muscle", ["all", *MUSCLE_GROUPS], horizontal=True,
                      format_func=lambda m: "All Muscles" if m == "all" else m)
    exercise = st.selectbox("Exercise", ["all", *exercise_index(weeks, muscle)],
                            format_func=lambda e: "All Exercises" if e == "all" else e)

    n_pages = page_count(weeks, WEEKS_PER_PAGE)
    page_num = st.number_input("Page", min_value=1, max_value=max(1, n_pages), value=1) - 1
    visible = paginate_weeks(weeks, page_num, WEEKS_PER_PAGE)
    labels = [f"{w['week_start']:%b} {w['week_start'].day}" for w in visible]
    choice = st.radio("Week", list(range(len(visible))), horizontal=True, format_func=lambda i: labels[i])
    week = filter_week(select_week(weeks, page_num * WEEKS_PER_PAGE + choice), muscle, exercise, query)

    c1, c2, c3 = st.columns(3)
    c1.metric(f"Week {week['week_number']}", f"{week['week_start']:%B} {week['week_start'].day}, {week['week_start'].year}")
    c2.metric("Consistency", f"{week['consistency_score']}%")
    c3.metric("Missed Workouts", week["missed_sessions_count"])
    for missed in missed_workouts(week):
        st.caption(f"❌ {missed['weekday']}: {missed['title']}")

    st.markdown("### Exercise Breakdown" + (f" — {exercise}" if exercise != "all" else ""))
    breakdown = exercise_breakdown(week)
    if breakdown.empty:
        st.caption("No exercises recorded for this filter")
    else:
        breakdown["done"] = breakdown["times_completed"].astype(str) + "/" + breakdown["count"].astype(str)
        st.dataframe(
            breakdown[["name", "muscle_group", "completion_rate", "avg_sets", "avg_reps", "done", "missed_count"]],
            use_container_width=True, hide_index=True,
        )

    st.markdown("### All Weeks")
    wb = weekly_breakdown(weeks)
    fig = go.Figure(go.Bar(
        x=wb["week_number"].apply(lambda w: f"W{w}"), y=wb["consistency_score"],
        marker_color=[MUSCLE_GROUP_COLORS["Legs"] if s >= 80 else "#ef4444" for s in wb["consistency_score"]],
    ))
    fig.update_layout(**PL, yaxis_range=[0, 105], height=300, showlegend=False)
    st.plotly_chart(fig, use_container_width=True, key="chart_weeks")


# ══════════════════════════════════════════════════════════════════════
# 🗓️ SCHEDULE
# ══════════════════════════════════════════════════════════════════════
elif page == "🗓️ Schedule":
    st.markdown("## 🗓️ Weekly Schedule")
    plan = state["weekly_plan"]
    day = st.selectbox("Day", WEEKDAYS, index=int(today.weekday()))
    day_plan = plan[day]

    title = st.text_input("Title", value=day_plan.get("title", ""), placeholder="Day Title (e.g. Chest Day)")
    rest = st.checkbox("Rest day", value=bool(day_plan.get("is_rest_day")))
    new_plan = plan
    if title != day_plan.get("title", ""):
        new_plan = update_day_title(new_plan, day, title)
    if rest != bool(day_plan.get("is_rest_day")):
        new_plan = set_rest_day(new_plan, day, rest)

    for i, ex in enumerate(day_plan["exercises"]):
        c1, c2, c3, c4, c5 = st.columns([3, 1, 1, 1, 1])
        name = c1.selectbox(
            "Exercise", sorted({*COMMON_EXERCISES, ex["name"]}),
            index=sorted({*COMMON_EXERCISES, ex["name"]}).index(ex["name"]), key=f"name_{day}_{i}",
        )
        sets = c2.number_input("Sets", min_value=0, value=int(ex.get("sets") or 0), key=f"sets_{day}_{i}")
        reps = c3.number_input("Reps", min_value=0, value=int(ex.get("reps") or 0), key=f"reps_{day}_{i}")
        weight = c4.number_input("kg", min_value=0.0, value=float(ex.get("weight") or 0), key=f"w_{day}_{i}")
        for field, value in (("name", name), ("sets", sets), ("reps", reps), ("weight", weight)):
            if value != ex.get(field):
                new_plan = update_exercise(new_plan, day, i, field, value)
        c5.caption(ex.get("muscle_group", ""))
        if c5.button("🗑", key=f"rm_{day}_{i}"):
            # later rows would shift; save the removal on its own
            _commit(sync.save_weekly_plan(state, remove_exercise(new_plan, day, i), user_id, today))

    if st.button("➕ Add exercise"):
        new_plan = add_exercise(new_plan, day)

    if new_plan != plan:
        _commit(sync.save_weekly_plan(state, new_plan, user_id, today))


st.sidebar.divider()
st.sidebar.caption("TrackMyGains · consistency is recomputed from your log on every view")
