"""Audit logging package."""

from business_manager.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
