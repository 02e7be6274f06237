from enum import Enum


class Role(str, Enum):
    ADMINISTRATOR = "administrator"
    TEACHER = "teacher"
    PARENT = "parent"
    STUDENT = "student"


class MarkType(str, Enum):
    LESSON_GRADE = "lesson_grade"
    COURSE_GRADE = "course_grade"
    SUBJECT_GRADE = "subject_grade"
    NOT_DONE = "not_done"
    NOTICE_GOOD = "notice_good"
    NOTICE_NEUTRAL = "notice_neutral"
    NOTICE_BAD = "notice_bad"
    ABSENT = "absent"
    LATE = "late"


class AssignmentType(str, Enum):
    HOMEWORK = "homework"
    TEST = "test"


# Marks that hang off a single lesson.
LESSON_MARK_TYPES = (MarkType.LESSON_GRADE, MarkType.NOT_DONE, MarkType.ABSENT, MarkType.LATE)
# Marks that must carry a grade definition.
GRADED_MARK_TYPES = (MarkType.LESSON_GRADE, MarkType.COURSE_GRADE, MarkType.SUBJECT_GRADE)
NOTICE_MARK_TYPES = (MarkType.NOTICE_GOOD, MarkType.NOTICE_NEUTRAL, MarkType.NOTICE_BAD)
# At most one current mark of these types per student and lesson.
SINGULAR_LESSON_MARK_TYPES = (MarkType.NOT_DONE, MarkType.ABSENT, MarkType.LATE)
