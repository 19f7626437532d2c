# app.py
from __future__ import annotations
from pathlib import Path
import logging
import os
import streamlit as st
from core.settings import load_settings
from core.db import get_engine, init_db
from core.directory_service import DirectoryService
from core.policy import can_view_page
from core.navigation import build_sections, navigate_to_logout

# ── Import the schema registry and the auto-discover function ──
from core.schema_registry import auto_discover, run_all as run_all_installers

logging.basicConfig(
    level=os.environ.get("OBE_LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

APP_FILE = Path(__file__).resolve()
APP_DIR = APP_FILE.parent
SCREENS_DIR = APP_DIR / "screens"


def _ensure_engine():
    if "engine" not in st.session_state:
        settings = load_settings()
        st.session_state["settings"] = settings
        st.session_state["engine"] = get_engine(settings.db.url, echo=settings.db.echo)
    return st.session_state["engine"]


def _session_user():
    u = st.session_state.get("user") or {}
    email = (u.get("email") or "").strip().lower()
    engine = _ensure_engine()
    if email and not u.get("roles"):
        u["roles"] = DirectoryService(engine).user_roles(email)
        st.session_state["user"] = u
    return u, email, u.get("roles", set())


def _add_page(policy_name: str, route_stem: str, title: str, pages_out: list):
    page_path = SCREENS_DIR / route_stem / "main.py"
    if not page_path.exists():
        logger.warning(f"Page '{policy_name}' missing: {page_path}")
        return
    relative_path_str = str(page_path.relative_to(APP_DIR)).replace(os.path.sep, "/")
    pages_out.append(st.Page(relative_path_str, title=title, url_path=route_stem))


def _render_login(engine):
    st.title("Login")
    with st.form("login_form"):
        email = st.text_input("Email")
        submitted = st.form_submit_button("Login")

    if submitted:
        user = DirectoryService(engine).get_user_by_email(email)
        if not user:
            st.error("No active account found for that email.")
            return
        st.session_state["user"] = {**user, "roles": {user["role"]}}
        st.session_state.pop("show_login", None)
        st.rerun()


def main():
    # 1. Get or create the engine.
    engine = _ensure_engine()
    settings = st.session_state["settings"]

    st.set_page_config(page_title=settings.app.title, layout="wide")

    # 2. Run database initialization ONCE per session.
    if "db_initialized" not in st.session_state:
        init_db(engine)
        try:
            auto_discover("schemas")
            run_all_installers(engine)
            DirectoryService(engine).ensure_superadmin(settings.app.bootstrap_admin_email)
        except Exception as e:
            logger.error("Schema installation failed", exc_info=True)
            st.error("Database schema initialization failed. See details below.")
            with st.expander("Diagnostics"):
                st.exception(e)
            st.stop()
        st.session_state["db_initialized"] = True

    user, email, roles = _session_user()
    if not email or st.session_state.get("show_login"):
        _render_login(engine)
        return

    with st.sidebar:
        st.caption(f"Signed in as **{user.get('name', email)}** ({', '.join(sorted(roles)) or 'no role'})")
        if st.button("Logout"):
            navigate_to_logout()

    pages_dict = build_sections(roles, can_view_page, _add_page)
    if not pages_dict:
        st.warning("Your account has no pages assigned. Contact an administrator.")
        return

    nav = st.navigation(pages_dict)
    nav.run()


if __name__ == "__main__":
    main()
