"""Domain layer - core business logic."""

from .models import Document, MonthlyLedger, ValidationViolation, WorkflowOutcome
from .validation import validate

__all__ = ["Document", "MonthlyLedger", "ValidationViolation", "WorkflowOutcome", "validate"]
