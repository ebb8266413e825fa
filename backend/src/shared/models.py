"""
Data models and status constants for the KPI marketplace.
Based on the KPI lifecycle: pending → submitted → approved/rejected → paid
"""
from dataclasses import dataclass


class ProjectStatus:
    """Project lifecycle statuses."""
    DRAFT = 'draft'
    OPEN = 'open'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    ALL = (DRAFT, OPEN, IN_PROGRESS, COMPLETED, CANCELLED)


class RoleStatus:
    """Project role statuses."""
    OPEN = 'open'
    ASSIGNED = 'assigned'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    ALL = (OPEN, ASSIGNED, COMPLETED, CANCELLED)


class ApplicationStatus:
    """Freelancer application statuses."""
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    WITHDRAWN = 'withdrawn'


class AssignmentStatus:
    """Assignment statuses."""
    ACTIVE = 'active'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class KpiStatus:
    """KPI (milestone) statuses."""
    PENDING = 'pending'
    SUBMITTED = 'submitted'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    PAID = 'paid'

    # Statuses whose amount counts as earned
    PAYABLE = (APPROVED, PAID)


class TransactionType:
    """Ledger audit record types."""
    DEPOSIT = 'deposit'
    PAYMENT = 'payment'
    REFUND = 'refund'
    PENALTY = 'penalty'

    ALL = (DEPOSIT, PAYMENT, REFUND, PENALTY)


class TransactionStatus:
    """Chain confirmation status of an audit record."""
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    FAILED = 'failed'


@dataclass(frozen=True)
class AuthContext:
    """Identity resolved by the authorization gate for one request."""
    address: str
