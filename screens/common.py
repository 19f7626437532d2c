# screens/common.py
"""
Helpers shared by the OBE pages: engine/user lookup and the course picker.
"""
from __future__ import annotations
from typing import Dict, List, Optional
import logging

import streamlit as st
from sqlalchemy.exc import SQLAlchemyError

from core.constants import Role
from core.course_service import CourseService

logger = logging.getLogger(__name__)


def get_engine_or_stop():
    engine = st.session_state.get("engine")
    if not engine:
        st.error("❌ Database engine not initialized")
        st.stop()
    return engine


def current_user() -> Dict:
    return st.session_state.get("user") or {}


def course_service(engine) -> CourseService:
    """Course service using the configured default target threshold."""
    settings = st.session_state.get("settings")
    if settings is None:
        return CourseService(engine)
    return CourseService(engine, default_threshold=settings.app.default_threshold)


def load_courses_for_user(service: CourseService, user: Dict) -> List[Dict]:
    """Faculty see their assigned courses; admins see their department's."""
    roles = user.get("roles") or set()
    try:
        if Role.SUPERADMIN in roles:
            return service.list_courses()
        if Role.ADMIN in roles:
            return service.list_courses(department_id=user.get("departmentId"))
        return service.list_courses(assigned_faculty_id=user.get("id"))
    except SQLAlchemyError:
        logger.error("Failed to load courses", exc_info=True)
        st.error("Failed to load courses.")
        return []


def select_course(courses: List[Dict], key: str) -> Optional[Dict]:
    if not courses:
        st.selectbox("Course", ["No courses assigned"], disabled=True, key=f"{key}_empty")
        return None
    options = {c["id"]: f"{c['code']} - {c['name']}" for c in courses}
    course_id = st.selectbox("Course", list(options), format_func=options.get, key=key)
    return next((c for c in courses if c["id"] == course_id), None)
