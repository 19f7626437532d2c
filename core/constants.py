"""
Configuration Constants for Course Configuration & Marks Entry
"""

# Assessment tool types
class ToolType:
    INTERNAL_ASSESSMENT = "Internal Assessment"
    ASSIGNMENT = "Assignment"
    SEMESTER_END_EXAM = "Semester End Exam"
    ACTIVITY = "Activity"
    IMPROVEMENT_TEST = "Improvement Test"


TOOL_TYPES = [
    ToolType.INTERNAL_ASSESSMENT,
    ToolType.ASSIGNMENT,
    ToolType.SEMESTER_END_EXAM,
    ToolType.ACTIVITY,
    ToolType.IMPROVEMENT_TEST,
]

# Types that carry no per-CO breakdown (only a total is entered)
UNMAPPED_TYPES = {ToolType.SEMESTER_END_EXAM, ToolType.ACTIVITY}

# Number / option for IA and Assignment
SUB_TYPE_OTHER = "Other"
SUB_TYPES = ["1", "2", "3", SUB_TYPE_OTHER]

# Bloom's taxonomy levels
K_LEVELS = ["K1", "K2", "K3", "K4", "K5", "K6"]

# Course types
class CourseType:
    THEORY = "Theory"
    INTEGRATED = "Integrated"
    LAB = "Lab"


COURSE_TYPES = {
    CourseType.THEORY: "Theory Only",
    CourseType.INTEGRATED: "Integrated (Theory + Lab)",
    CourseType.LAB: "Laboratory Only",
}

DEFAULT_TARGET_THRESHOLD = 60

# Pseudo-question labels used on the marks grid
class QuestionLabel:
    EXTERNAL = "External"
    SCORE = "Score"


DEFAULT_EXTERNAL_MAX = 100

# Roles
class Role:
    FACULTY = "faculty"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


# Grade distribution bands: (label, lower bound %)
GRADE_BANDS = [
    ("Distinction (>75%)", 75),
    ("First Class (60-75%)", 60),
    ("Pass (50-60%)", 50),
    ("Fail (<50%)", 0),
]

# CSV template
CSV_FIXED_COLUMNS = ["USN", "Name"]
