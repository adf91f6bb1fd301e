from __future__ import annotations

import enum


class UserRole(str, enum.Enum):
    COMPANY = "COMPANY"
    ORGANIZATION = "ORGANIZATION"
    ADMIN = "ADMIN"
    SUPERADMIN = "SUPERADMIN"
    ANALYST = "ANALYST"


STAFF_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPERADMIN})
READ_ALL_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPERADMIN, UserRole.ANALYST})


class CompanySize(str, enum.Enum):
    MICRO = "MICRO"
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"


class ProgramStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


class ApplicationStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class NotificationType(str, enum.Enum):
    NEW_MESSAGE = "NEW_MESSAGE"
    NEW_DOCUMENT = "NEW_DOCUMENT"
    APPLICATION_STATUS_CHANGE = "APPLICATION_STATUS_CHANGE"
    APPLICATION_REVIEWED = "APPLICATION_REVIEWED"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    PROGRAM_DEADLINE_APPROACHING = "PROGRAM_DEADLINE_APPROACHING"
    NEW_PROGRAM_AVAILABLE = "NEW_PROGRAM_AVAILABLE"
    COMPANY_VERIFICATION = "COMPANY_VERIFICATION"
