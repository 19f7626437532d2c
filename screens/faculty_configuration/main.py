# screens/faculty_configuration/main.py
"""
Course Configuration

Tab 1: course outcomes (COs), the modules they cover, Bloom's level and
the course-wide settings.
Tab 2: assessment tools with their CO mark distribution.

Edits go to a draft held in session state; nothing reaches the database
until "Save All". Switching course discards the draft.
"""

import streamlit as st
import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
import logging

from core.assessment_config import (
    ConfigurationDraft,
    AssessmentTool,
    allocated,
    is_balanced,
    improvement_targets,
)
from core.constants import TOOL_TYPES, SUB_TYPES, SUB_TYPE_OTHER, K_LEVELS, COURSE_TYPES, ToolType
from core.course_service import CourseService
from core.errors import ConcurrentEditError, ConfigurationError
from screens.common import (
    get_engine_or_stop, current_user, course_service, load_courses_for_user, select_course,
)

logger = logging.getLogger(__name__)

DRAFT_KEY = "config_draft"
CONFLICT_KEY = "config_conflict"
TOOL_FIELDS = ("type", "sub_type", "custom_name", "linked_assessment", "max_marks", "weightage")


def _widget_key(tool_id: str, field_name: str) -> str:
    return f"tool_{field_name}_{tool_id}"


def _co_widget_key(tool_id: str, co_id: str) -> str:
    return f"tool_co_{tool_id}_{co_id}"


def _forget_tool_widgets(draft: ConfigurationDraft, tool_id: str) -> None:
    """Drop widget state so widgets re-read the reconciled draft values."""
    for field_name in TOOL_FIELDS:
        st.session_state.pop(_widget_key(tool_id, field_name), None)
    for co in draft.cos:
        st.session_state.pop(_co_widget_key(tool_id, co.id), None)


def _reset_widgets(prefixes=("co_", "tool_", "settings_")) -> None:
    for key in [k for k in st.session_state.keys() if isinstance(k, str) and k.startswith(prefixes)]:
        del st.session_state[key]


def _get_draft(course: dict) -> ConfigurationDraft:
    draft = st.session_state.get(DRAFT_KEY)
    if draft is None or draft.course_id != course["id"]:
        _reset_widgets()
        draft = ConfigurationDraft.from_course(course)
        st.session_state[DRAFT_KEY] = draft
    return draft


# ===========================================================================
# CALLBACKS
# ===========================================================================

def _on_tool_change(draft: ConfigurationDraft, tool_id: str, field_name: str):
    value = st.session_state.get(_widget_key(tool_id, field_name))
    draft.update_tool(tool_id, field_name, value)
    _forget_tool_widgets(draft, tool_id)


def _on_co_marks_change(draft: ConfigurationDraft, tool_id: str, co_id: str):
    draft.set_co_marks(tool_id, co_id, st.session_state.get(_co_widget_key(tool_id, co_id)))


def _on_remove_co(draft: ConfigurationDraft, co_id: str):
    draft.remove_co(co_id)
    # Row widgets are keyed by position
    _reset_widgets(("co_", "tool_co_"))


# ===========================================================================
# TAB 1: COs
# ===========================================================================

def render_co_tab(draft: ConfigurationDraft):
    st.subheader("Course Outcomes (COs) & Syllabus Mapping")
    st.caption("Define the COs and map them to the specific modules in your syllabus.")

    if st.button("➕ Add CO", key="add_co"):
        draft.add_co()
        st.rerun()

    if not draft.cos:
        st.info("No COs defined yet.")

    for idx, co in enumerate(draft.cos):
        c_id, c_desc, c_mod, c_k, c_del = st.columns([1, 4, 2, 1, 1])
        with c_id:
            new_id = st.text_input("ID", value=co.id, key=f"co_id_{idx}")
        with c_desc:
            new_desc = st.text_area("CO Description", value=co.description, height=68,
                                    placeholder="Enter CO statement...", key=f"co_desc_{idx}")
        with c_mod:
            new_modules = st.text_input("Modules Covered", value=co.modules,
                                        placeholder="e.g. Module 1, 2", key=f"co_mod_{idx}")
        with c_k:
            new_k = st.selectbox("Bloom's Level", K_LEVELS, index=K_LEVELS.index(co.k_level), key=f"co_k_{idx}")
        with c_del:
            st.write("")
            confirm = st.checkbox("Confirm", key=f"co_del_confirm_{co.id}",
                                  help=f"Deleting {co.id} removes it from all assessments.")
            if st.button("🗑️", key=f"co_del_{co.id}", disabled=not confirm):
                _on_remove_co(draft, co.id)
                st.rerun()

        if new_id.strip() != co.id:
            try:
                draft.update_co(idx, "id", new_id)
            except ValueError as e:
                st.error(f"{co.id}: {e}")
        if new_desc != co.description:
            draft.update_co(idx, "description", new_desc)
        if new_modules != co.modules:
            draft.update_co(idx, "modules", new_modules)
        if new_k != co.k_level:
            draft.update_co(idx, "k_level", new_k)

    st.markdown("---")
    st.subheader("Global Parameters")
    col_type, col_thr = st.columns(2)
    course_types = list(COURSE_TYPES)
    with col_type:
        current = draft.settings.course_type if draft.settings.course_type in course_types else course_types[0]
        draft.settings.course_type = st.selectbox(
            "Course Type", course_types, index=course_types.index(current),
            format_func=COURSE_TYPES.get, key="settings_course_type",
        )
    with col_thr:
        draft.settings.target_threshold = int(st.number_input(
            "Student Pass Threshold (%)", min_value=0, max_value=100, step=1,
            value=int(draft.settings.target_threshold), key="settings_threshold",
        ))


# ===========================================================================
# TAB 2: ASSESSMENT TOOLS
# ===========================================================================

def render_tool_card(draft: ConfigurationDraft, tool: AssessmentTool):
    is_see = tool.type == ToolType.SEMESTER_END_EXAM
    is_activity = tool.type == ToolType.ACTIVITY
    is_improvement = tool.type == ToolType.IMPROVEMENT_TEST

    with st.container(border=True):
        left, right = st.columns([2, 3])

        with left:
            st.markdown(f"**{tool.name or '(unnamed)'}**")
            st.selectbox(
                "Assessment Type", TOOL_TYPES,
                index=TOOL_TYPES.index(tool.type) if tool.type in TOOL_TYPES else 0,
                key=_widget_key(tool.id, "type"),
                on_change=_on_tool_change, args=(draft, tool.id, "type"),
            )

            if not is_see and not is_activity and not is_improvement:
                st.selectbox(
                    "Number / Option", SUB_TYPES,
                    index=SUB_TYPES.index(tool.sub_type) if tool.sub_type in SUB_TYPES else 0,
                    key=_widget_key(tool.id, "sub_type"),
                    on_change=_on_tool_change, args=(draft, tool.id, "sub_type"),
                )

            if tool.sub_type == SUB_TYPE_OTHER or is_activity:
                st.text_input(
                    "Activity Name" if is_activity else "Custom Name",
                    value=tool.custom_name,
                    placeholder="e.g. Quiz 1" if is_activity else "e.g. Lab Test 1",
                    key=_widget_key(tool.id, "custom_name"),
                    on_change=_on_tool_change, args=(draft, tool.id, "custom_name"),
                )

            if is_improvement:
                targets = [""] + [t.name for t in improvement_targets(draft.tools, tool.id)]
                current = tool.linked_assessment if tool.linked_assessment in targets else ""
                st.selectbox(
                    "Improvement For", targets, index=targets.index(current),
                    format_func=lambda v: v or "Select Assessment",
                    key=_widget_key(tool.id, "linked_assessment"),
                    on_change=_on_tool_change, args=(draft, tool.id, "linked_assessment"),
                )

            c_max, c_weight = st.columns(2)
            with c_max:
                st.number_input(
                    "Conducted", min_value=0, step=1, value=int(tool.max_marks),
                    key=_widget_key(tool.id, "max_marks"),
                    on_change=_on_tool_change, args=(draft, tool.id, "max_marks"),
                )
            with c_weight:
                st.number_input(
                    "Weightage", min_value=0, step=1, value=int(tool.weightage),
                    key=_widget_key(tool.id, "weightage"),
                    on_change=_on_tool_change, args=(draft, tool.id, "weightage"),
                )

            confirm = st.checkbox("Confirm removal", key=f"tool_del_confirm_{tool.id}")
            if st.button("Remove Tool", key=f"tool_del_{tool.id}", disabled=not confirm):
                draft.remove_tool(tool.id)
                st.rerun()

        with right:
            if not tool.requires_co_mapping:
                st.info(f"**{tool.type}**\n\nNo CO mapping required. Only total marks will be entered.")
                return

            total = allocated(tool)
            badge = "✅" if is_balanced(tool) else "⚠️"
            st.markdown(f"**Marks Distribution (on Conducted Marks)** {badge} {total} / {tool.max_marks} Allocated")

            if not draft.cos:
                st.warning('No COs defined. Go to "CO & Syllabus Definition" tab first.')
                return

            cols = st.columns(min(len(draft.cos), 6))
            for idx, co in enumerate(draft.cos):
                with cols[idx % len(cols)]:
                    st.number_input(
                        co.id, min_value=0, step=1,
                        value=int(tool.co_distribution.get(co.id, 0)),
                        key=_co_widget_key(tool.id, co.id),
                        on_change=_on_co_marks_change, args=(draft, tool.id, co.id),
                    )


def render_tools_tab(draft: ConfigurationDraft):
    header, add = st.columns([4, 1])
    with header:
        st.subheader("Assessment Tools & Scaling")
    with add:
        if st.button("➕ Add Tool", key="add_tool"):
            draft.add_tool()
            st.rerun()

    if not draft.tools:
        st.info("No assessment tools configured.")
    for tool in list(draft.tools):
        render_tool_card(draft, tool)

    unbalanced = [t.name for t in draft.tools if not is_balanced(t)]
    if unbalanced:
        st.warning(f"⚠️ Unbalanced allocation: {', '.join(unbalanced)}")


# ===========================================================================
# SAVE
# ===========================================================================

def save_draft(service: CourseService, draft: ConfigurationDraft, course: dict, user: dict):
    errors = draft.validate()
    if errors:
        st.error("**Configuration Error:**\n\n" + "\n".join(f"- {e}" for e in errors)
                 + "\n\nPlease correct the configuration.")
        return

    try:
        saved = service.save_configuration(course["id"], draft.to_payload(),
                                           expected_version=draft.version, actor=user.get("id"))
    except ConfigurationError as e:
        st.error("**Configuration Error:**\n\n" + "\n".join(f"- {msg}" for msg in e.errors))
        return
    except ConcurrentEditError as e:
        logger.warning(str(e))
        st.session_state[CONFLICT_KEY] = (course["id"], str(e))
        return
    except (SQLAlchemyError, ValueError):
        logger.error("Failed to save configuration", exc_info=True)
        st.error("Error saving configuration.")
        return

    draft.version = saved["version"]
    st.success(f"✅ Configuration for {course['code']} saved successfully!")


def render_conflict(course: dict):
    """Stale-draft notice; stays up until the draft is reloaded."""
    conflict = st.session_state.get(CONFLICT_KEY)
    if not conflict or conflict[0] != course["id"]:
        return
    st.error(f"⛔ {conflict[1]}")
    if st.button("🔄 Discard my changes and reload", key="reload_after_conflict"):
        st.session_state.pop(DRAFT_KEY, None)
        st.session_state.pop(CONFLICT_KEY, None)
        st.rerun()


def render_faculty_configuration_page():
    st.title("⚙️ Course Configuration")
    st.caption("Manage COs, Modules, and Assessment Planning.")

    engine = get_engine_or_stop()
    user = current_user()
    service = course_service(engine)

    courses = load_courses_for_user(service, user)
    c_select, c_save = st.columns([4, 1])
    with c_select:
        course = select_course(courses, key="config_course")
    if not course:
        st.info("No courses assigned.")
        return

    draft = _get_draft(course)

    with c_save:
        st.write("")
        save_clicked = st.button("💾 Save All", type="primary", key="save_config")

    tab_cos, tab_tools = st.tabs(["1. CO & Syllabus Definition", "2. Assessment & Scaling Plan"])
    with tab_cos:
        render_co_tab(draft)
    with tab_tools:
        render_tools_tab(draft)

    if save_clicked:
        save_draft(service, draft, course, user)
    render_conflict(course)

    with st.expander("📜 Change history"):
        try:
            history = service.audit_trail(course["id"])
        except SQLAlchemyError:
            logger.error("Failed to load audit trail", exc_info=True)
            history = []
        if history:
            st.dataframe(pd.DataFrame(history), hide_index=True, use_container_width=True)
        else:
            st.caption("No changes recorded.")


if __name__ == "__main__":
    render_faculty_configuration_page()
