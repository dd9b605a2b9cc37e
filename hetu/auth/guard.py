"""Route guard requiring a live session and, optionally, a CSRF token."""

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, Request

from ..observability.logging import bind_user_id
from ..security.csrf import reject, verify_request
from .session import get_session_identity, summarize_identity, unauthorized


logger = logging.getLogger(__name__)


class AuthGuard:
    """FastAPI dependency wrapping a route behind authentication.

    The session is resolved first, so a request without one is answered with
    401 whatever its CSRF header says. Only then is the CSRF token checked
    (403 on failure). Either way the route body never runs. On success the
    identity is returned to the route and stored on ``request.state``.
    """

    def __init__(self, require_csrf: bool = False):
        self.require_csrf = require_csrf

    async def __call__(
        self,
        request: Request,
        identity: Optional[Dict[str, Any]] = Depends(get_session_identity),
    ) -> Dict[str, Any]:
        if not identity:
            logger.info("Rejected %s %s: no valid session", request.method, request.url.path)
            raise unauthorized()
        if self.require_csrf and not verify_request(request):
            logger.debug("CSRF check failed for %s", summarize_identity(identity))
            raise reject(request)
        request.state.current_user = identity
        bind_user_id(identity.get("sub"))
        return identity


require_user = AuthGuard()
require_user_csrf = AuthGuard(require_csrf=True)
