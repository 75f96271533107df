import os
from datetime import datetime, timezone
from typing import Optional

import requests
import streamlit as st

from schemas import Challenge, CommunityPost, Dashboard, Habit, Notification, UserProfile

# --------------------- API Client --------------------- #

API_BASE = os.getenv("HABITAI_API_BASE", "http://localhost:8000")
DEFAULT_USER_ID = os.getenv("HABITAI_USER_ID", "")


def call_api(method: str, path: str, payload: Optional[dict] = None, params: Optional[dict] = None):
    """
    Helper to call the HabitAI FastAPI.

    - method: "GET" | "POST" | "PATCH" | "DELETE"
    - path: e.g. "/habits"
    - payload: dict sent as JSON (optional)

    Raises RuntimeError with details if the API responds with 4xx/5xx.
    """
    url = f"{API_BASE}{path}"
    headers = {"X-User-Id": st.session_state.get("user_id", "")}
    try:
        resp = requests.request(
            method, url, json=payload, params=params, headers=headers, timeout=60
        )
    except requests.RequestException as e:
        raise RuntimeError(f"API {path} request failed: {e}")

    if resp.status_code >= 400:
        try:
            data = resp.json()
        except ValueError:
            data = resp.text
        raise RuntimeError(f"API {path} failed: {resp.status_code} – {data}")

    if resp.status_code == 204 or not resp.content:
        return None
    return resp.json()


def today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


# --------------------- Streamlit setup --------------------- #

st.set_page_config(
    page_title="HabitAI",
    page_icon="✅",
    layout="wide",
)

st.title("✅ HabitAI")
st.caption("Build habits, keep streaks, join challenges, and get AI tips.")


def init_state():
    if "user_id" not in st.session_state:
        st.session_state.user_id = DEFAULT_USER_ID


init_state()


with st.sidebar:
    st.header("⚙️ Account")
    st.session_state.user_id = st.text_input(
        "User ID (from your identity provider)", value=st.session_state.user_id
    ).strip()
    page = st.radio(
        "Go to",
        ["Dashboard", "Habits", "Challenges", "Community", "Notifications", "Profile"],
    )

if not st.session_state.user_id:
    st.info("Sign in (enter your user ID in the sidebar) to get started.")
    st.stop()


# ----------------------------------------------------
# Dashboard
# ----------------------------------------------------
def render_dashboard():
    try:
        data = Dashboard(**call_api("GET", "/dashboard"))
    except RuntimeError as e:
        st.error(f"Failed to load dashboard: {e}")
        return

    stats = data.stats
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Habits", stats.total_habits)
    c2.metric("Longest streak", f"{stats.longest_streak} {'day' if stats.longest_streak == 1 else 'days'}")
    c3.metric("Active streaks", stats.active_streaks)
    c4.metric("Unread notifications", data.unread_notifications)

    st.subheader("📈 Weekly progress")
    st.bar_chart(
        {f"Week {i + 1}": rate for i, rate in enumerate(stats.weekly_completion_rates)}
    )

    col_left, col_right = st.columns(2)
    with col_left:
        st.subheader("🎯 Today's focus")
        if not stats.todays_focus:
            st.success("All caught up for today! Great job!")
        for item in stats.todays_focus:
            st.markdown(f"**{item.title}**")
            if item.ai_suggested_task:
                st.caption(f"💡 {item.ai_suggested_task}")

    with col_right:
        st.subheader("🏅 Badges")
        if not data.badges:
            st.caption("No badges yet. Keep going!")
        for badge in data.badges:
            st.markdown(f"**{badge.name}** – {badge.description}")

    st.subheader("💡 AI insights")
    if st.button("Generate insights"):
        try:
            result = call_api("POST", "/ai/insights", {"today": today_iso()})
            st.write(result.get("insights", "No insights available at the moment."))
        except RuntimeError as e:
            st.error(f"Failed to load AI insights: {e}")


# ----------------------------------------------------
# Habits
# ----------------------------------------------------
def render_habits():
    st.subheader("➕ New habit")
    with st.form("new_habit"):
        title = st.text_input("Goal", placeholder="Example: Exercise daily")
        description = st.text_area("Description", height=80)
        frequency = st.selectbox("Frequency", ["daily", "weekly", "monthly"])
        times = st.multiselect("Available times", ["morning", "afternoon", "evening", "anytime"])
        difficulty = st.select_slider("Difficulty", ["easy", "medium", "challenging"], value="medium")
        suggest = st.form_submit_button("Get AI micro-task")
        create = st.form_submit_button("Create habit", type="primary")

    if suggest:
        if not title.strip():
            st.warning("Please enter a habit goal to get suggestions.")
        else:
            try:
                result = call_api(
                    "POST",
                    "/ai/micro-task",
                    {"goal": title.strip(), "times": times, "difficulty": difficulty},
                )
                st.session_state.ai_suggestion = result["micro_task_suggestion"]
            except RuntimeError as e:
                st.error(f"Could not fetch AI suggestion: {e}")

    if st.session_state.get("ai_suggestion"):
        st.info(f"💡 {st.session_state.ai_suggestion}")

    if create:
        if not title.strip():
            st.warning("Please enter a habit goal.")
        else:
            try:
                call_api(
                    "POST",
                    "/habits",
                    {
                        "title": title.strip(),
                        "description": description,
                        "frequency": frequency,
                        "ai_suggested_task": st.session_state.pop("ai_suggestion", None),
                    },
                )
                st.success(f"{title.strip()} has been added to your habits.")
            except RuntimeError as e:
                st.error(f"Failed to create habit: {e}")

    st.subheader("📋 Your habits")
    try:
        habits = [Habit(**h) for h in call_api("GET", "/habits")]
    except RuntimeError as e:
        st.error(f"Failed to load habits: {e}")
        return

    if not habits:
        st.caption("No habits yet.")
    today = today_iso()
    for habit in habits:
        done_today = any(p.completed for p in habit.progress if p.date[:10] == today)
        cols = st.columns([4, 1, 1, 1])
        cols[0].markdown(f"**{habit.title}** · {habit.frequency} · 🔥 {habit.streak}")
        if habit.ai_suggested_task:
            cols[0].caption(f"💡 {habit.ai_suggested_task}")
        label = "Undo" if done_today else "Done ✅"
        if cols[1].button(label, key=f"progress_{habit.id}"):
            try:
                call_api(
                    "POST",
                    f"/habits/{habit.id}/progress",
                    {"date": today_iso(), "completed": not done_today},
                )
                st.rerun()
            except RuntimeError as e:
                st.error(f"Failed to update progress: {e}")
        cols[2].write(f"{len(habit.progress)} days logged")
        if cols[3].button("Delete", key=f"delete_{habit.id}"):
            try:
                call_api("DELETE", f"/habits/{habit.id}")
                st.rerun()
            except RuntimeError as e:
                st.error(f"Failed to delete habit: {e}")


# ----------------------------------------------------
# Challenges
# ----------------------------------------------------
def render_challenges():
    with st.expander("➕ Create a challenge"):
        with st.form("new_challenge"):
            title = st.text_input("Title")
            description = st.text_area("Description", height=80)
            category = st.text_input("Category", placeholder="fitness")
            start = st.date_input("Start date")
            end = st.date_input("End date")
            image_url = st.text_input("Image URL (optional)")
            if st.form_submit_button("Create challenge", type="primary"):
                try:
                    call_api(
                        "POST",
                        "/challenges",
                        {
                            "title": title,
                            "description": description,
                            "category": category or None,
                            "start_date": start.isoformat(),
                            "end_date": end.isoformat(),
                            "image_url": image_url or None,
                        },
                    )
                    st.success("Challenge created.")
                except RuntimeError as e:
                    st.error(f"Failed to create challenge: {e}")

    try:
        challenges = [Challenge(**c) for c in call_api("GET", "/challenges")]
    except RuntimeError as e:
        st.error(f"Failed to load challenges: {e}")
        return

    for challenge in challenges:
        with st.container():
            cols = st.columns([1, 3])
            cols[0].image(challenge.image_url, use_container_width=True)
            cols[1].markdown(f"### {challenge.title}")
            cols[1].caption(f"{challenge.start_date} → {challenge.end_date} · {len(challenge.participant_ids)} participants")
            cols[1].write(challenge.description)
            for entry in challenge.leaderboard_preview:
                cols[1].markdown(f"- {entry.user_name}: {entry.score}")
            if st.session_state.user_id not in challenge.participant_ids:
                if cols[1].button("Join challenge", key=f"join_{challenge.id}"):
                    try:
                        call_api("POST", f"/challenges/{challenge.id}/join")
                        st.rerun()
                    except RuntimeError as e:
                        st.error(f"Failed to join challenge: {e}")
        st.markdown("---")


# ----------------------------------------------------
# Community
# ----------------------------------------------------
def render_community():
    with st.form("new_post", clear_on_submit=True):
        content = st.text_area("Share your progress", height=80)
        if st.form_submit_button("Post", type="primary") and content.strip():
            try:
                call_api("POST", "/posts", {"content": content.strip()})
            except RuntimeError as e:
                st.error(f"Failed to post: {e}")

    try:
        posts = [CommunityPost(**p) for p in call_api("GET", "/posts", params={"count": 20})]
    except RuntimeError as e:
        st.error(f"Failed to load feed: {e}")
        return

    for post in posts:
        st.markdown(f"**{post.user_name}** · {post.created_at[:10]}")
        st.write(post.content)
        cols = st.columns([1, 1, 4])
        liked = st.session_state.user_id in post.likes
        if cols[0].button(f"{'💙' if liked else '🤍'} {len(post.likes)}", key=f"like_{post.id}"):
            try:
                call_api("POST", f"/posts/{post.id}/like")
                st.rerun()
            except RuntimeError as e:
                st.error(f"Failed to like post: {e}")
        cols[1].write(f"💬 {post.comments_count}")
        with cols[2].expander("Comments"):
            try:
                for comment in call_api("GET", f"/posts/{post.id}/comments"):
                    st.markdown(f"**{comment['user_name']}:** {comment['content']}")
            except RuntimeError as e:
                st.error(f"Failed to load comments: {e}")
            reply = st.text_input("Add a comment", key=f"comment_{post.id}")
            if st.button("Send", key=f"send_{post.id}") and reply.strip():
                try:
                    call_api("POST", f"/posts/{post.id}/comments", {"content": reply.strip()})
                    st.rerun()
                except RuntimeError as e:
                    st.error(f"Failed to comment: {e}")
        st.markdown("---")


# ----------------------------------------------------
# Notifications
# ----------------------------------------------------
def render_notifications():
    if st.button("Mark all as read"):
        try:
            call_api("POST", "/notifications/read-all")
        except RuntimeError as e:
            st.error(f"Failed to mark notifications: {e}")

    try:
        items = [Notification(**n) for n in call_api("GET", "/notifications", params={"count": 50})]
    except RuntimeError as e:
        st.error(f"Failed to load notifications: {e}")
        return

    if not items:
        st.caption("No notifications.")
    for note in items:
        cols = st.columns([5, 1])
        marker = "" if note.read else "🔵 "
        cols[0].markdown(f"{marker}{note.message}")
        cols[0].caption(f"{note.type} · {note.created_at[:16].replace('T', ' ')}")
        if not note.read and cols[1].button("Read", key=f"read_{note.id}"):
            try:
                call_api("POST", f"/notifications/{note.id}/read")
                st.rerun()
            except RuntimeError as e:
                st.error(f"Failed to mark notification: {e}")


# ----------------------------------------------------
# Profile
# ----------------------------------------------------
def render_profile():
    try:
        profile = UserProfile(**call_api("GET", "/users/me"))
    except RuntimeError:
        st.info("No profile yet.")
        if st.button("Create my profile", type="primary"):
            try:
                call_api("POST", "/users/me", {})
                st.rerun()
            except RuntimeError as e:
                st.error(f"Failed to create profile: {e}")
        return

    with st.form("profile"):
        name = st.text_input("Name", value=profile.name)
        email = st.text_input("Email", value=profile.email)
        tz = st.text_input("Timezone", value=profile.timezone or "")
        times = st.multiselect(
            "Preferred times",
            ["morning", "afternoon", "evening"],
            default=[t for t in profile.preferences.preferred_times if t in ("morning", "afternoon", "evening")],
        )
        if st.form_submit_button("Save", type="primary"):
            try:
                call_api(
                    "PATCH",
                    "/users/me",
                    {
                        "name": name,
                        "email": email,
                        "timezone": tz or None,
                        "preferences": {
                            "preferred_times": times,
                            "goal_categories": profile.preferences.goal_categories,
                        },
                    },
                )
                st.success("Profile updated.")
            except RuntimeError as e:
                st.error(f"Failed to update profile: {e}")


PAGES = {
    "Dashboard": render_dashboard,
    "Habits": render_habits,
    "Challenges": render_challenges,
    "Community": render_community,
    "Notifications": render_notifications,
    "Profile": render_profile,
}

PAGES[page]()
