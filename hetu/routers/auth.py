"""Session, CSRF and profile endpoints under ``/api/auth``."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlmodel import select

from ..audit import record_audit_log
from ..auth import require_user, require_user_csrf
from ..auth.session import REFRESH_COOKIE_NAME
from ..auth.supabase import AuthProviderError, InvalidCredentials, get_auth_client
from ..config import get_session_cookie_name, is_turnstile_required
from ..db import get_session
from ..models import UserProfile, utcnow
from ..schemas import (
    AccountIn,
    AccountOut,
    ChangePasswordIn,
    ContributorsOut,
    CsrfTokenOut,
    LoginIn,
    SuccessOut,
    TurnstileIn,
    TurnstileOut,
)
from ..security.csrf import clear_token, csrf_protect, issue_token
from ..services.turnstile import TurnstileConfigError, TurnstileUnavailable, verify_turnstile_token


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

REFRESH_TOKEN_MAX_AGE = 60 * 60 * 24 * 30


def _server_error(message: str = "Server configuration error") -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


def _set_session_cookies(response: Response, session: Dict[str, Any]) -> None:
    cookie_args = {"httponly": True, "secure": True, "samesite": "strict", "path": "/"}
    response.set_cookie(
        get_session_cookie_name(),
        session["access_token"],
        max_age=int(session.get("expires_in") or 3600),
        **cookie_args,
    )
    refresh_token = session.get("refresh_token")
    if refresh_token:
        response.set_cookie(REFRESH_COOKIE_NAME, refresh_token, max_age=REFRESH_TOKEN_MAX_AGE, **cookie_args)


def _clear_session_cookies(request: Request, response: Response) -> None:
    names = {get_session_cookie_name(), REFRESH_COOKIE_NAME}
    names.update(name for name in request.cookies if name.startswith("sb-"))
    for name in sorted(names):
        response.delete_cookie(name, path="/", secure=True, httponly=True, samesite="strict")
    clear_token(response)


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("cf-connecting-ip") or request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()
    return request.client.host if request.client else None


@router.get("/csrf-token", response_model=CsrfTokenOut, summary="Issue a CSRF token")
def get_csrf_token(response: Response):
    token = issue_token(response)
    response.headers["Cache-Control"] = "no-store"
    return CsrfTokenOut(csrf_token=token)


@router.post("/login", response_model=SuccessOut, dependencies=[Depends(csrf_protect)], summary="Sign in")
def login(payload: LoginIn, request: Request, response: Response):
    if is_turnstile_required():
        if not payload.turnstile_token:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing human verification token")
        try:
            result = verify_turnstile_token(payload.turnstile_token, _client_ip(request))
        except TurnstileConfigError:
            logger.error("TURNSTILE_SECRET_KEY is not configured but TURNSTILE_REQUIRED is on")
            raise _server_error()
        except TurnstileUnavailable:
            raise _server_error("Human verification service unavailable")
        if not result.success:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"message": "Human verification failed", "errorCodes": result.error_codes},
            )

    try:
        session = get_auth_client().sign_in_with_password(payload.email, payload.password)
    except InvalidCredentials:
        logger.info("Failed login attempt")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    except AuthProviderError:
        logger.exception("Auth provider error during login")
        raise _server_error()

    _set_session_cookies(response, session)
    return SuccessOut()


@router.post("/logout", response_model=SuccessOut, summary="Sign out")
def logout(request: Request, response: Response, current_user=Depends(require_user_csrf)):
    token = current_user.get("access_token")
    if token:
        try:
            get_auth_client().sign_out(token)
        except AuthProviderError:
            logger.exception("Auth provider error during logout")
            raise _server_error("Logout failed")
    _clear_session_cookies(request, response)
    return SuccessOut()


@router.post("/change-password", response_model=SuccessOut, summary="Change the current user's password")
def change_password(payload: ChangePasswordIn, current_user=Depends(require_user_csrf)):
    email = current_user.get("email")
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot verify the password of this account")

    client = get_auth_client()
    try:
        verified = client.sign_in_with_password(email, payload.old_password)
    except InvalidCredentials:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Old password is incorrect")
    except AuthProviderError:
        logger.exception("Auth provider error while verifying the old password")
        raise _server_error()

    token = current_user.get("access_token") or verified.get("access_token")
    try:
        client.update_user(token, {"password": payload.new_password})
    except AuthProviderError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc) or "Password update failed")
    logger.info("Password changed for user %s", current_user.get("sub"))
    return SuccessOut()


@router.get("/account", response_model=AccountOut, summary="Current user's profile")
def get_account(current_user=Depends(require_user), session=Depends(get_session)):
    profile = session.get(UserProfile, current_user["sub"])
    if profile is None:
        return AccountOut(display_name="", display=False, intro=None)
    return AccountOut(display_name=profile.name or "", display=profile.display, intro=profile.intro)


@router.post("/account", response_model=SuccessOut, summary="Update the current user's profile")
def update_account(payload: AccountIn, current_user=Depends(require_user_csrf), session=Depends(get_session)):
    user_id = current_user.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown user")

    profile = session.get(UserProfile, user_id)
    if profile is None:
        profile = UserProfile(id=user_id)
    profile.name = payload.display_name
    fields = payload.model_fields_set
    if "display" in fields and payload.display is not None:
        profile.display = payload.display
    if "intro" in fields:
        profile.intro = payload.intro
    profile.updated_at = utcnow()
    session.add(profile)
    record_audit_log(
        session,
        entity_type="user_profile",
        entity_id=user_id,
        action="update",
        actor_user_id=user_id,
        details={"fields": sorted(fields)},
    )
    session.commit()
    return SuccessOut()


@router.get("/contributors", response_model=ContributorsOut, summary="Contributors who chose to be listed")
def list_contributors(session=Depends(get_session)):
    stmt = (
        select(UserProfile)
        .where(UserProfile.display == True)  # noqa: E712
        .order_by(UserProfile.created_at)
    )
    names = [profile.name.strip() for profile in session.exec(stmt).all() if profile.name and profile.name.strip()]
    return ContributorsOut(contributors=names)


@router.post("/verify-turnstile", response_model=TurnstileOut, summary="Verify a human verification token")
def verify_turnstile(payload: TurnstileIn, request: Request):
    if not payload.token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing verification token")
    try:
        result = verify_turnstile_token(payload.token, _client_ip(request))
    except TurnstileConfigError:
        raise _server_error()
    except TurnstileUnavailable:
        raise _server_error("Human verification service unavailable")
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Verification failed", "errorCodes": result.error_codes},
        )
    return TurnstileOut(success=True)
