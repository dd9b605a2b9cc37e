import hmac
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from ..cache import get_response_cache
from ..config import get_revalidate_secret
from ..models import utcnow
from ..schemas import RevalidateOut


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["cache"])


def _secret_matches(candidate: Optional[str]) -> bool:
    expected = get_revalidate_secret()
    if not expected or not candidate:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


@router.api_route("/revalidate", methods=["GET", "POST"], response_model=RevalidateOut, summary="Invalidate cached pages")
def revalidate(
    secret: Optional[str] = Query(None),
    id: Optional[int] = Query(None, ge=1),
):
    if not _secret_matches(secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid secret")
    invalidated = get_response_cache().invalidate(id)
    logger.info("Revalidated %s", f"song {id}" if id is not None else "all pages")
    message = f"Song {id} revalidated" if id is not None else "All pages revalidated"
    return RevalidateOut(message=message, invalidated=invalidated, timestamp=utcnow())
