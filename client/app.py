import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

import httpx
import streamlit as st


def setup_client_logging() -> logging.Logger:
    logs_dir = Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("tedai.streamlit")
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    fh = RotatingFileHandler(logs_dir / "client.log", maxBytes=2_000_000, backupCount=3)
    fh.setFormatter(fmt)
    logger.addHandler(fh)
    return logger


LOGGER = setup_client_logging()

DEFAULT_API_URL = os.getenv("TEDAI_API_URL", "http://localhost:5001")
SUGGESTIONS = [
    "🤖 What's the latest news in AI?",
    "💭 Tell me something interesting",
    "👩🏻‍💻 What's trending in tech today?",
]


def ask(api_url: str, session_id: str, query: str) -> str:
    """POST the query to the chat endpoint and return the assistant's answer."""
    LOGGER.info("POST /api/chat session_id=%s", session_id)
    response = httpx.post(
        f"{api_url.rstrip('/')}/api/chat",
        json={"query": query, "sessionId": session_id},
        timeout=120.0,
    )
    if response.status_code != 200:
        try:
            body = response.json()
        except ValueError:
            body = {}
        detail = body.get("details") or body.get("error") or response.reason_phrase
        raise RuntimeError(f"Server error: {detail}")
    return response.json()["response"]


def clear_session(api_url: str, session_id: str) -> None:
    LOGGER.info("POST /api/chat/clear session_id=%s", session_id)
    httpx.post(
        f"{api_url.rstrip('/')}/api/chat/clear",
        json={"sessionId": session_id},
        timeout=10.0,
    ).raise_for_status()


st.set_page_config(page_title="TedAI", page_icon="🧸", layout="centered")

st.title("TedAI")

with st.sidebar:
    st.subheader("Connection")
    api_url = st.text_input("API URL", value=DEFAULT_API_URL)
    session_id = st.text_input("Session ID", value=st.session_state.get("session_id", "default"))
    st.session_state["session_id"] = session_id
    st.markdown("---")
    if st.button("Clear chat"):
        st.session_state["messages"] = []
        try:
            clear_session(api_url, session_id)
        except httpx.HTTPError as e:
            LOGGER.error("Clear failed: %s", e)
            st.error(f"Could not clear the server session: {e}")

if "messages" not in st.session_state:
    st.session_state["messages"] = []

prompt = st.chat_input("Ask me anything…")

if not st.session_state["messages"] and not prompt:
    st.markdown(
        "**Hi! I'm TedAI.** I can search the web, answer questions, and have "
        "friendly conversations. What would you like to talk about?"
    )
    for suggestion in SUGGESTIONS:
        if st.button(suggestion):
            prompt = suggestion.split(" ", 1)[1]

for m in st.session_state["messages"]:
    with st.chat_message(m["role"]):
        if m.get("is_error"):
            st.error(m["content"])
        else:
            st.markdown(m["content"])

if prompt:
    st.session_state["messages"].append({"role": "user", "content": prompt})
    with st.chat_message("user"):
        st.markdown(prompt)

    with st.chat_message("assistant"):
        with st.spinner("Thinking…"):
            try:
                answer = ask(api_url, session_id, prompt)
                st.markdown(answer)
                st.session_state["messages"].append({"role": "assistant", "content": answer})
            except (httpx.HTTPError, RuntimeError, KeyError) as e:
                LOGGER.error("Chat request failed: %s", e)
                text = f"❌ Error: {e}. Please make sure the server is running on {api_url}"
                st.error(text)
                st.session_state["messages"].append(
                    {"role": "assistant", "content": text, "is_error": True}
                )
