from classjournal.auth.models import ParentChild, Session, User
from classjournal.core.models.academic_year import Year
from classjournal.core.models.assignment import Assignment, DoneAssignment
from classjournal.core.models.audit_log import Log
from classjournal.core.models.class_model import ClassYear, SchoolClass
from classjournal.core.models.grade import Grade
from classjournal.core.models.group import Group, GroupUser
from classjournal.core.models.journal import Journal, JournalStudent
from classjournal.core.models.lesson import Lesson
from classjournal.core.models.mark import AbsenceExcuse, Mark
from classjournal.core.models.subject import Subject

__all__ = [
    "AbsenceExcuse",
    "Assignment",
    "ClassYear",
    "DoneAssignment",
    "Grade",
    "Group",
    "GroupUser",
    "Journal",
    "JournalStudent",
    "Lesson",
    "Log",
    "Mark",
    "ParentChild",
    "SchoolClass",
    "Session",
    "Subject",
    "User",
    "Year",
]
