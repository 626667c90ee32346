from .log_audit_service import LogAuditService

__all__ = ["LogAuditService"]
