import streamlit as st
import os
import sys
import html
from typing import Optional

# Streamlit runs this file as a script; make the project packages importable
PROJECT_ROOT = os.environ.get("STUDEX_ROOT") or os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from frontend.api_client import APIService, DEFAULT_MODELS
from frontend.chat_controller import (
    AttachmentTooLargeError,
    ChatController,
    build_task_context,
    welcome_message,
)
from frontend.database import open_session
from frontend.repositories.chat_repository import ChatRepository

DEFAULT_MODEL = "gpt-4o-mini"
SUGGESTED_QUESTIONS = [
    "How do I solve a quadratic equation?",
    "Help me outline a persuasive essay",
    "How should I write a hypothesis for my experiment?",
]

def format_file_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    else:
        return f"{size_bytes / (1024 * 1024):.1f} MB"

def user_headers() -> dict:
    """Identity forwarded to the chat API for activity logging"""
    headers = {}
    for env_name, header in (("STUDEX_USER_ID", "X-User-Id"),
                             ("STUDEX_USER_EMAIL", "X-User-Email"),
                             ("STUDEX_USER_NAME", "X-User-Name")):
        value = os.getenv(env_name)
        if value:
            headers[header] = value
    return headers

def get_controller() -> ChatController:
    if "controller" not in st.session_state:
        repository = ChatRepository(open_session())
        st.session_state.controller = ChatController(repository, APIService(), user_headers=user_headers())
    return st.session_state.controller

def local_css():
    st.markdown("""
    <style>
        .user-bubble {
            background: rgba(138, 43, 226, 0.4);
            border-radius: 18px 18px 4px 18px;
            padding: 12px 16px;
            color: white;
            max-width: 70%;
            margin-left: auto;
            margin-bottom: 15px;
            word-wrap: break-word;
        }
        .attachment-chip {
            background: rgba(255,255,255,0.1);
            border-radius: 8px;
            padding: 4px 8px;
            margin-top: 4px;
            font-size: 12px;
        }
        footer {
            display: none;
        }
    </style>
    """, unsafe_allow_html=True)

def render_user_message(message):
    attachments_html = "".join(
        f'<div class="attachment-chip">📄 {html.escape(att["name"])} '
        f'<span style="opacity: 0.6;">{format_file_size(att.get("size") or 0)}</span></div>'
        for att in (message.attachments or [])
    )
    st.markdown(
        f'<div class="user-bubble">{html.escape(message.content)}{attachments_html}</div>',
        unsafe_allow_html=True,
    )

def render_assistant_message(message):
    caption = f"\n\n<sub>{html.escape(message.model)} · {html.escape(message.source or '')}</sub>" if message.model else ""
    st.markdown(f"🤖 {message.content}{caption}", unsafe_allow_html=True)

def sidebar(controller: ChatController):
    with st.sidebar:
        st.markdown("### 🎓 STUDEX Assistant")

        if st.button("Begin a New Chat", key="new_chat_btn", use_container_width=True):
            controller.new_conversation()
            st.rerun()

        st.markdown("**Current task**")
        st.text_input("Title", key="task_title")
        st.text_input("Category", key="task_category")
        st.text_area("Description", key="task_description", height=68)

        st.markdown("**Chat History**")
        conversations = controller.list_conversations()
        if not conversations:
            st.caption("No conversations yet")

        for conv in conversations:
            is_current = controller.current_conversation_id == conv.id
            marker = "🟢 " if is_current else "💬 "
            col1, col2 = st.columns([0.85, 0.15])
            with col1:
                if st.button(f"{marker}{conv.title}", key=f"conv_{conv.id}", use_container_width=True):
                    controller.select_conversation(conv.id)
                    st.rerun()
            with col2:
                if st.button("🗑", key=f"delete_{conv.id}", help="Delete chat"):
                    controller.delete_conversation(conv.id)
                    st.rerun()

def current_task() -> Optional[dict]:
    title = st.session_state.get("task_title", "").strip()
    if not title:
        return None
    return {
        "title": title,
        "category": st.session_state.get("task_category", "").strip(),
        "description": st.session_state.get("task_description", "").strip(),
    }

def model_selector(controller: ChatController):
    if "model_options" not in st.session_state:
        st.session_state.model_options = controller.api.get_models() or DEFAULT_MODELS
    options = st.session_state.model_options
    default = DEFAULT_MODEL if DEFAULT_MODEL in options else options[0]
    st.selectbox("Model", options, index=options.index(default), key="current_model",
                 label_visibility="collapsed")

def message_input(controller: ChatController):
    """Input area; hidden while the selected conversation waits for an answer"""
    if controller.is_awaiting():
        st.info("AI is thinking... Please wait")
        return

    for attachment in list(controller.staged_attachments):
        col1, col2 = st.columns([0.9, 0.1])
        with col1:
            st.caption(f"📎 {attachment.name} ({format_file_size(attachment.size)})")
        with col2:
            if st.button("❌", key=f"remove_{attachment.id}", help=f"Remove {attachment.name}"):
                controller.remove_attachment(attachment.id)
                st.rerun()

    with st.form(key="chat_form", clear_on_submit=True):
        col1, col2, col3 = st.columns([0.25, 0.65, 0.1])
        with col1:
            uploaded_files = st.file_uploader("Attach", accept_multiple_files=True,
                                              key=f"uploader_{st.session_state.get('uploader_round', 0)}",
                                              label_visibility="collapsed")
        with col2:
            text = st.text_area("Message", placeholder="Ask me anything about your homework...",
                                height=80, label_visibility="collapsed")
        with col3:
            submitted = st.form_submit_button("➤")

    if not submitted:
        return

    for uploaded in uploaded_files or []:
        try:
            controller.stage_attachment(uploaded.name, uploaded.type, uploaded.getvalue())
        except AttachmentTooLargeError as e:
            st.error(str(e))
    st.session_state.uploader_round = st.session_state.get("uploader_round", 0) + 1

    pending = controller.submit(text, model=st.session_state.get("current_model"),
                                context=build_task_context(current_task()))
    if pending is not None:
        st.session_state.setdefault("pending_requests", []).append(pending)
        st.rerun()

def resolve_pending(controller: ChatController):
    """Answer queued questions; each answer goes to the conversation it was asked in"""
    pending_requests = st.session_state.get("pending_requests", [])
    while pending_requests:
        pending = pending_requests[0]
        with st.spinner("Thinking..."):
            message = controller.resolve(pending)
        pending_requests.pop(0)

        if message is None:
            continue
        if message.conversation_id == controller.current_conversation_id and controller.has_pending_text(message.id):
            controller.type_out(message, st.empty().markdown)
        else:
            controller.finalize(message.id)
    if "pending_requests" in st.session_state and not pending_requests:
        del st.session_state["pending_requests"]

def chat_screen(controller: ChatController):
    model_selector(controller)

    messages = controller.messages()
    if not messages:
        st.markdown(welcome_message(current_task()))
        st.caption("Try asking: " + " · ".join(SUGGESTED_QUESTIONS))

    for message in messages:
        if message.role == "user":
            render_user_message(message)
        else:
            render_assistant_message(message)

    if st.session_state.get("pending_requests"):
        resolve_pending(controller)
        st.rerun()

    if controller.last_note:
        st.warning(controller.last_note)

    message_input(controller)

def main():
    st.set_page_config(page_title="STUDEX Homework Assistant", page_icon="🎓")
    local_css()

    controller = get_controller()
    if not controller.api.is_connected():
        st.warning("Backend API is unreachable. Answers will fail until it is running at "
                   f"{controller.api.base_url}.")

    # A rerun may have interrupted an animation; keep finished answers whole
    if not st.session_state.get("pending_requests"):
        controller.finalize_all()

    sidebar(controller)
    chat_screen(controller)

if __name__ == "__main__":
    main()
