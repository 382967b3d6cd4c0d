"""Database enums for the RBAC models."""

import enum


class ApprovalStatus(enum.StrEnum):
    """Lifecycle of a user approval request (and the user's own approval flag)."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ConditionOperator(enum.StrEnum):
    """Operators accepted in role-permission conditions."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
