# app/auth.py
from datetime import datetime
from typing import Callable, NamedTuple, Optional
import logging

from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from . import crud, models
from .config import settings
from .database import get_db
from .tokens import SESSION_LIFETIME, TokenDenylist, TokenError, decode_session_token, get_denylist

logger = logging.getLogger(__name__)

COOKIE_NAME = "auth-token"


class SessionResolution(NamedTuple):
    user: Optional[models.User]
    clear_cookie: bool


ANONYMOUS = SessionResolution(user=None, clear_cookie=False)
POISONED = SessionResolution(user=None, clear_cookie=True)


class SessionResolver:
    """
    Перетворює токен із cookie на користувача.

    Відсутній і недійсний токен для викликача однакові: обидва дають
    анонімну сесію. Для недійсного токена додатково вимагається видалити
    cookie. Назовні пробиваються лише помилки сховища.
    """

    def __init__(self, user_lookup: Callable[[str], Optional[models.User]], denylist: Optional[TokenDenylist] = None):
        self.user_lookup = user_lookup
        self.denylist = denylist

    def resolve(self, token: Optional[str], now: Optional[datetime] = None) -> SessionResolution:
        if not token:
            return ANONYMOUS

        try:
            claims = decode_session_token(token, now=now)
        except TokenError as exc:
            logger.info("Rejected session token (%s): %s", exc.kind, exc)
            return POISONED

        if self.denylist is not None and self.denylist.is_revoked(claims):
            logger.info("Rejected session token (revoked) for user %s", claims.subject)
            return POISONED

        user = self.user_lookup(claims.subject)
        if user is None:
            logger.info("Session token refers to a missing user %s", claims.subject)
            return POISONED
        return SessionResolution(user=user, clear_cookie=False)


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=int(SESSION_LIFETIME.total_seconds()),
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def _clear_cookie_header() -> str:
    response = Response()
    clear_auth_cookie(response)
    return response.headers["set-cookie"]


def get_session_resolver(db: Session = Depends(get_db)) -> SessionResolver:
    return SessionResolver(lambda user_id: crud.get_user(db, user_id), denylist=get_denylist())


def resolve_session(request: Request, resolver: SessionResolver = Depends(get_session_resolver)) -> SessionResolution:
    return resolver.resolve(request.cookies.get(COOKIE_NAME))


def get_current_user_optional(
    response: Response,
    session: SessionResolution = Depends(resolve_session),
) -> Optional[models.User]:
    """
    Повертає поточного користувача або None для анонімної сесії.

    Args:
        response (Response): Відповідь, у якій за потреби видаляється cookie.
        session (SessionResolution): Результат розбору cookie сесії.

    Returns:
        models.User або None: Поточний користувач.
    """
    if session.clear_cookie:
        clear_auth_cookie(response)
    return session.user


def get_current_user(session: SessionResolution = Depends(resolve_session)) -> models.User:
    """
    Отримує поточного користувача з cookie сесії.

    Args:
        session (SessionResolution): Результат розбору cookie сесії.

    Returns:
        models.User: Поточний користувач.

    Raises:
        HTTPException: 401, якщо сесія відсутня або недійсна.
    """
    if session.user is None:
        headers = {"set-cookie": _clear_cookie_header()} if session.clear_cookie else None
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers=headers,
        )
    return session.user
