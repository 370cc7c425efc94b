"""
Admin audit trail.

Admin actions go to the process log only; the query helpers return empty
results shaped like the eventual responses.
"""

from typing import Any, Dict, Optional

from loguru import logger

from core.config import settings


class AdminAuditLogService:

    @staticmethod
    def log_admin_action(admin_id: str, action: str, resource_id: str,
                         changes: Optional[Dict[str, Any]] = None):
        logger.info(f"[ADMIN_AUDIT] {action} on {resource_id} by admin {admin_id}: {changes or {}}")

    @staticmethod
    def get_logs(page: int = 1, limit: int = 10) -> Dict[str, Any]:
        return {
            "logs": [],
            "total": 0,
            "page": page,
            "limit": limit,
            "hasMore": False,
            "summary": {"totalLogs": 0, "todayLogs": 0, "securityEvents": 0, "errorLogs": 0},
        }

    @staticmethod
    def get_stats() -> Dict[str, Any]:
        return {
            "overview": {
                "totalLogs": 0,
                "logsThisMonth": 0,
                "averageLogsPerDay": 0,
                "retentionDays": settings.audit_log_retention_days,
            },
            "byAction": [],
            "byResourceType": [],
        }


audit_log = AdminAuditLogService()
