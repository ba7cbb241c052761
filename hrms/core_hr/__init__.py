"""Core HR module — the Employee record shared by leave and attendance."""

from hrms.core_hr.models import Employee

__all__ = ["Employee"]
