# app/core/navigation.py
from dataclasses import dataclass
from typing import List, Set, Callable
import streamlit as st


def navigate_to_logout():
    """Clear the signed-in user and go back to login"""
    for key in ("user", "config_draft", "config_conflict", "marks_sheet"):
        st.session_state.pop(key, None)
    st.session_state["show_login"] = True
    st.rerun()


@dataclass
class NavSection:
    """A group of pages in the sidebar"""
    key: str
    title: str
    icon: str
    pages: List[tuple]  # List of (policy_name, route_stem, title)


NAV_SECTIONS = [
    NavSection(
        key="faculty",
        title="Faculty",
        icon="👨‍🏫",
        pages=[
            ("Course Configuration", "faculty_configuration", "⚙️ Course Configuration"),
            ("Marks Entry", "marks_entry", "📝 Marks Entry"),
            ("Student Reports", "student_reports", "📊 Student Reports"),
        ]
    ),
    NavSection(
        key="admin",
        title="Administration",
        icon="🏛️",
        pages=[
            ("Assign Courses", "course_assignment", "📚 Assign Courses"),
        ]
    ),
]


def build_sections(roles: Set[str], can_view_page_fn: Callable, add_page_fn: Callable) -> dict:
    """
    Collect the pages each role may open, grouped by section.

    ``add_page_fn(policy_name, route_stem, title, out)`` appends to ``out``
    when the page file exists.
    """
    sections = {}
    for section in NAV_SECTIONS:
        section_pages = []
        for policy_name, route_stem, page_title in section.pages:
            if can_view_page_fn(policy_name, roles):
                add_page_fn(policy_name, route_stem, page_title, section_pages)
        if section_pages:
            sections[f"{section.icon} {section.title}"] = section_pages
    return sections
