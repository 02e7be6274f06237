from typing import Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    message = "internal server error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message or self.message)
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code


# ----- Kinds -----
class NotFoundError(ServiceError):
    message = "not found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    message = "conflict"
    status_code = status.HTTP_409_CONFLICT


class BadRequestError(ServiceError):
    message = "bad request"
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(ServiceError):
    message = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(ServiceError):
    message = "not allowed"
    status_code = status.HTTP_403_FORBIDDEN


class InfrastructureError(ServiceError):
    pass


# ----- Not found -----
class NoSuchUser(NotFoundError):
    message = "no such user"


class NoSuchClass(NotFoundError):
    message = "no such class"


class NoSuchSubject(NotFoundError):
    message = "no such subject"


class NoSuchGrade(NotFoundError):
    message = "no such grade"


class NoSuchYear(NotFoundError):
    message = "no such year"


class NoSuchJournal(NotFoundError):
    message = "no such journal"


class NoSuchLesson(NotFoundError):
    message = "no such lesson"


class NoSuchAssignment(NotFoundError):
    message = "no such assignment"


class NoSuchMark(NotFoundError):
    message = "no such mark"


class NoSuchExcuse(NotFoundError):
    message = "no such excuse"


class NoSuchGroup(NotFoundError):
    message = "no such group"


class NoSuchUsers(BadRequestError):
    message = "no such users"


class NoSuchParentLink(NotFoundError):
    message = "no such parent set for child"


class NoSuchSession(NotFoundError):
    message = "no such session"


# ----- Conflict -----
class EmailAlreadyExists(ConflictError):
    message = "an user with specified email already exists"


class IdentifierAlreadyExists(ConflictError):
    message = "a grade with specified identifier already exists"


class UserAlreadyInGroup(ConflictError):
    message = "user already in group"


class UserAlreadyInJournal(ConflictError):
    message = "user already in journal"


class AbsenceExcused(ConflictError):
    message = "absence already excused"


class MarkAlreadyExists(ConflictError):
    message = "student already has a mark of this type for the lesson"


class EditConflict(ConflictError):
    message = "edit conflict, please try again"


# ----- Validation -----
class InvalidDateFormat(BadRequestError):
    message = "invalid date format"


class InvalidCourse(BadRequestError):
    message = "course must be between 1 and the number of courses in the year"


class InvalidMarkTarget(BadRequestError):
    message = "invalid target for mark type"


# ----- Authorization -----
class AuthenticationRequired(UnauthorizedError):
    message = "authentication required"


class InvalidToken(UnauthorizedError):
    message = "invalid token"


class InvalidCredentials(UnauthorizedError):
    message = "invalid credentials"


class NotAllowed(ForbiddenError):
    message = "not allowed"


class NotAStudent(BadRequestError):
    message = "not a student"


class NotATeacher(BadRequestError):
    message = "not a teacher"


class NotAParent(BadRequestError):
    message = "not a parent"


class JournalArchived(BadRequestError):
    message = "journal is archived"


class ClassArchived(BadRequestError):
    message = "class is archived"


class MarkNotCurrent(BadRequestError):
    message = "mark is not current"


class MarkDeleted(BadRequestError):
    message = "mark is deleted"


class NotValidAbsence(BadRequestError):
    message = "not valid absence for user"


class UserNotInJournal(BadRequestError):
    message = "user not in journal"


class GroupArchived(BadRequestError):
    message = "group is archived"


class UserNotInGroup(BadRequestError):
    message = "user not in group"


# ----- Infrastructure -----
class DeadlineExceeded(InfrastructureError):
    message = "database operation timed out"


class DatabaseUnavailable(InfrastructureError):
    message = "database unavailable"
