"""Audit logging and stdlib logging setup."""

from .logger import AuditLog, LogEntry, LogLevel, AUDIT_LOG_NAME, setup_logging

__all__ = [
    "AuditLog",
    "LogEntry",
    "LogLevel",
    "AUDIT_LOG_NAME",
    "setup_logging",
]
