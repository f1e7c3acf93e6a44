"""
API routes - combined router from all domain modules.

Shared helpers live here; every sub-router imports what it needs from this
package.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException

from clubstats.services.errors import NotFoundError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------
def to_http_exception(e: Exception, action: str) -> HTTPException:
    """
    Map a service exception to an HTTP error.

    NotFoundError -> 404, other ValueError (validation) -> 400, anything
    else -> 500 and logged.
    """
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"Error {action}: {str(e)}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Error {action}: {str(e)}")


def parse_group_names(groups: Optional[List[str]]) -> List[str]:
    """Accept ?groups=A&groups=B as well as ?groups=A,B."""
    names: List[str] = []
    for value in groups or []:
        names.extend(part.strip() for part in value.split(",") if part.strip())
    return names


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from clubstats.api.routes.sessions import router as sessions_router  # noqa: E402
from clubstats.api.routes.check_ins import router as check_ins_router  # noqa: E402
from clubstats.api.routes.statistics import router as statistics_router  # noqa: E402

router = APIRouter()
router.include_router(sessions_router)
router.include_router(check_ins_router)
router.include_router(statistics_router)
