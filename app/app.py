"""
UI layer
Purpose: Streamlit-only glue. Renders the sidebar (history, accounts), the
transcript and the compose box, and delegates all work to the controller.
Keeps UI concerns separate from the streaming/session logic so that logic
can be unit tested without Streamlit.

Every action runs the controller's coroutine with asyncio.run; the live
answer is pushed into a placeholder from the engine's on_update callback
so deltas show up while the stream is being read.
"""

import asyncio

import streamlit as st

from research_core import config
from research_core.controller import ResearchSessionController
from research_core.models import Account, ExchangeStatus, SessionState, Tier
from research_core.persistence.session_store import JsonFileSessionStore
from research_core.services.api_client import ApiError, HttpResearchApi
from research_core.services.history_sync import NotAuthenticatedError
from research_core.thread_engine import ExchangeInFlightError

config.configure_logging()

# ---------------------------
# Page config
# ---------------------------
st.set_page_config(
    page_title="Research Hub",
    page_icon="🔎",
    layout="wide",
    initial_sidebar_state="expanded",
)

TIERS = [Tier.FREE.value, Tier.PRO.value]

# ---------------------------
# Session state init
# ---------------------------
st_session = st.session_state
st_session.setdefault("controller", None)
st_session.setdefault("tier", config.DEFAULT_TIER)
st_session.setdefault("confirm_destructive", False)
st_session.setdefault("editing_chat_id", None)


# ---------------------------
# Helpers
# ---------------------------
def confirm_destructive(prompt: str) -> bool:
    """Destructive history calls go through only with the sidebar toggle on."""
    return bool(st_session.get("confirm_destructive"))


def get_controller() -> ResearchSessionController:
    """Return the controller, creating and starting it on first use."""
    controller = st_session.get("controller")
    if controller is None:
        controller = ResearchSessionController(
            HttpResearchApi(),
            JsonFileSessionStore(),
            confirm=confirm_destructive,
        )
        asyncio.run(controller.startup())
        st_session.controller = controller
    return controller


def run(coro):
    """Run one controller action on a fresh event loop."""
    return asyncio.run(coro)


def render_turn(question: str, answer: str, tier: str) -> None:
    with st.chat_message("user"):
        st.markdown(question)
    with st.chat_message("assistant", avatar="⭐" if tier == Tier.PRO.value else None):
        st.markdown(answer or "—")


controller = get_controller()

# ---------------------------
# SIDEBAR: accounts & history
# ---------------------------
with st.sidebar:
    st.markdown("# Research Hub")

    active = controller.active_account
    st.markdown(f"**{active.name or active.email}**" if active else "**Guest**")
    if active:
        st.caption(active.email)

    others = [a for a in controller.accounts if not active or a.email != active.email]
    for acc in others:
        if st.button(f"Switch to {acc.name or acc.email}", key=f"switch_{acc.email}"):
            run(controller.switch_account(acc))
            st.rerun()

    with st.expander("Add account"):
        email = st.text_input("Email", key="add_email")
        name = st.text_input("Name", key="add_name")
        token = st.text_input("Access token", type="password", key="add_token")
        if st.button("Sign in", type="primary"):
            try:
                run(controller.login(Account(email=email.strip(), name=name, token=token)))
                st.rerun()
            except ValueError as e:
                st.error(str(e))

    if active and st.button("Sign out"):
        run(controller.logout())
        st.rerun()

    st.divider()
    if st.button("New Research", type="primary", use_container_width=True):
        controller.new_conversation()
        st.rerun()

    st.markdown("## User history" if active else "## Guest history")
    st_session.confirm_destructive = st.toggle(
        "Confirm deletions",
        value=st_session.confirm_destructive,
        help="Deleting a thread or clearing history only runs while this is on.",
    )

    summaries = controller.summaries
    if not summaries:
        st.caption("No recent research")
    for idx, item in enumerate(summaries):
        key = item.chat_id or f"untracked_{idx}"
        if st_session.editing_chat_id == item.chat_id and item.chat_id:
            new_title = st.text_input(
                "Title", value=item.display_question, key=f"title_{key}"
            )
            c1, c2 = st.columns(2)
            if c1.button("Save", key=f"save_{key}"):
                if run(controller.rename_thread(item.chat_id, new_title)):
                    st_session.editing_chat_id = None
                    st.rerun()
                st.toast("Rename did not take effect.", icon="⚠️")
            if c2.button("Cancel", key=f"cancel_{key}"):
                st_session.editing_chat_id = None
                st.rerun()
            continue

        c1, c2, c3 = st.columns([6, 1, 1])
        if c1.button(item.display_question or "Untitled", key=f"open_{key}"):
            if item.chat_id:
                try:
                    run(controller.open_thread(item.chat_id))
                except (ApiError, NotAuthenticatedError) as e:
                    st.toast(f"Could not open conversation: {e}", icon="⚠️")
                st.rerun()
        if item.chat_id and c2.button("✏️", key=f"edit_{key}"):
            st_session.editing_chat_id = item.chat_id
            st.rerun()
        if item.chat_id and c3.button("🗑️", key=f"delete_{key}"):
            if run(controller.delete_thread(item.chat_id)):
                st.rerun()
            st.toast("Delete did not take effect.", icon="⚠️")

    if summaries and st.button("Clear All"):
        if run(controller.clear_all_history()):
            st.rerun()
        st.toast("Turn on “Confirm deletions” to clear history.", icon="⚠️")

# ---------------------------
# MAIN: transcript & compose
# ---------------------------
st_session.tier = st.radio(
    "Tier",
    TIERS,
    index=TIERS.index(st_session.tier),
    horizontal=True,
)

state = controller.state
if not len(state.thread) and not state.live_answer:
    st.caption("Welcome, Researcher.")

for msg in state.thread:
    if msg.settled:
        render_turn(msg.question, msg.answer, msg.tier.value)
    else:
        with st.chat_message("user"):
            st.markdown(msg.question)

live_box = st.empty()
if state.live_answer:
    live_box.markdown(state.live_answer)


def show_live(session: SessionState) -> None:
    if session.status is ExchangeStatus.SENDING:
        live_box.caption("Connecting…")
    elif session.live_answer:
        live_box.markdown(session.live_answer)


raw = st.chat_input("Ask a research question…", disabled=not controller.can_send())
if raw is not None and raw.strip():
    with st.chat_message("user"):
        st.markdown(raw.strip())
    controller.engine.on_update = show_live
    try:
        run(controller.ask(raw, st_session.tier))
    except ExchangeInFlightError as e:
        st.toast(str(e), icon="⚠️")
    finally:
        controller.engine.on_update = None
    st.rerun()
