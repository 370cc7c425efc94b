"""
Response envelopes and pagination helpers shared by the routers.
"""

import math
import random
import string
import time
from typing import Any, Dict, Optional

from fastapi import HTTPException

from core.exceptions import ServiceError


def success_response(message: str, data: Any = None) -> Dict[str, Any]:
    return {"success": True, "message": message, "data": data}


def paginated_response(message: str, data: Any, pagination: Dict[str, int]) -> Dict[str, Any]:
    return {"success": True, "message": message, "data": data, "pagination": pagination}


def admin_error(exc: Exception, code: str, fallback_message: str) -> HTTPException:
    """
    Build the admin error envelope as an HTTPException.

    ServiceErrors keep their status code and message; anything else is a 500
    with the fallback message.
    """
    if isinstance(exc, ServiceError):
        status_code = exc.status_code
        message = exc.message
    else:
        status_code = 500
        message = fallback_message

    return HTTPException(
        status_code=status_code,
        detail={
            "success": False,
            "message": message,
            "error": type(exc).__name__,
            "code": code,
        },
    )


def build_pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def operation_id(prefix: str, suffix_length: int = 6) -> str:
    """`<prefix>-<epoch ms>-<random base36>` identifier for bulk operations."""
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(random.choice(alphabet) for _ in range(suffix_length))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def iso(value) -> Optional[str]:
    return value.isoformat() if value else None
