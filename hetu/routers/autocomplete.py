import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..auth import require_user_csrf
from ..services.autocomplete import AutoCompleteError, AutoCompleteNotFound, search_metadata


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/auto-complete", summary="Look up song metadata for the editor")
def auto_complete(
    title: str = Query(..., min_length=1, max_length=100),
    album: Optional[str] = Query(None, max_length=100),
    current_user=Depends(require_user_csrf),
):
    try:
        return search_metadata(title, album)
    except AutoCompleteNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No matching song found")
    except AutoCompleteError as exc:
        logger.warning("Auto-complete lookup failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Auto-complete request failed")
