"""Application services."""

from .payroll import (
    PayrollService,
    RecordCache,
    configure_payroll_service,
    get_payroll_service,
    reset_payroll_state,
)

__all__ = [
    "PayrollService",
    "RecordCache",
    "configure_payroll_service",
    "get_payroll_service",
    "reset_payroll_state",
]
