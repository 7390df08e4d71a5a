# app/tokens.py
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional
import logging
import uuid

from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError
import redis

from .config import settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
SESSION_LIFETIME = timedelta(days=7)
DEV_SECRET_KEY = "dev-insecure-secret"


class InsecureConfigError(RuntimeError):
    """
    Ключ підпису не налаштований у production-середовищі.
    """


class TokenError(Exception):
    """Базова помилка перевірки токена сесії."""
    kind = "invalid"


class MalformedToken(TokenError):
    kind = "malformed"


class InvalidSignature(TokenError):
    kind = "invalid_signature"


class TokenExpired(TokenError):
    kind = "expired"


class TokenClaims(NamedTuple):
    subject: str
    issued_at: int
    expires_at: int
    token_id: Optional[str]


def resolve_signing_key(config=settings) -> str:
    """
    Повертає ключ підпису токенів з конфігурації.

    Args:
        config (Settings): Налаштування застосунку.

    Returns:
        str: Ключ підпису.

    Raises:
        InsecureConfigError: Якщо ключ відсутній у production.
    """
    if config.JWT_SECRET:
        return config.JWT_SECRET
    if config.is_production:
        raise InsecureConfigError("JWT_SECRET must be set in production")
    logger.warning("JWT_SECRET is not set, falling back to an insecure development key")
    return DEV_SECRET_KEY


SECRET_KEY = resolve_signing_key()


def _timestamp(now: Optional[datetime]) -> int:
    if now is None:
        now = datetime.now(timezone.utc)
    return int(now.timestamp())


def create_session_token(user_id: str, now: Optional[datetime] = None, secret_key: str = None) -> str:
    """
    Створює підписаний токен сесії для користувача.

    Args:
        user_id (str): Ідентифікатор користувача (claim "sub").
        now (datetime, optional): Момент видачі, за замовчуванням поточний час.
        secret_key (str, optional): Ключ підпису, за замовчуванням із конфігурації.

    Returns:
        str: Закодований JWT токен, дійсний 7 днів.
    """
    issued_at = _timestamp(now)
    to_encode = {
        "sub": user_id,
        "iat": issued_at,
        "exp": issued_at + int(SESSION_LIFETIME.total_seconds()),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(to_encode, secret_key or SECRET_KEY, algorithm=ALGORITHM)


def decode_session_token(token: str, now: Optional[datetime] = None, secret_key: str = None) -> TokenClaims:
    """
    Перевіряє підпис і строк дії токена.

    Args:
        token (str): JWT токен із cookie.
        now (datetime, optional): Момент перевірки, за замовчуванням поточний час.
        secret_key (str, optional): Ключ підпису, за замовчуванням із конфігурації.

    Returns:
        TokenClaims: Розібрані claims токена.

    Raises:
        MalformedToken: Якщо токен неможливо розібрати.
        InvalidSignature: Якщо підпис не збігається.
        TokenExpired: Якщо строк дії минув.
    """
    try:
        jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise MalformedToken(str(exc)) from exc

    try:
        payload = jwt.decode(
            token,
            secret_key or SECRET_KEY,
            algorithms=[ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTClaimsError as exc:
        raise MalformedToken(str(exc)) from exc
    except JWTError as exc:
        raise InvalidSignature(str(exc)) from exc

    subject = payload.get("sub")
    expires_at = payload.get("exp")
    if not subject or not isinstance(expires_at, (int, float)):
        raise MalformedToken("Token is missing required claims")

    # Строк дії перевіряємо самі, щоб момент перевірки можна було задати явно
    if _timestamp(now) >= expires_at:
        raise TokenExpired("Token has expired")

    return TokenClaims(
        subject=subject,
        issued_at=int(payload.get("iat") or 0),
        expires_at=int(expires_at),
        token_id=payload.get("jti"),
    )


def verify_session_token(token: str, now: Optional[datetime] = None) -> str:
    """
    Повертає ідентифікатор користувача з дійсного токена.
    """
    return decode_session_token(token, now=now).subject


class TokenDenylist:
    """
    Необов'язковий список відкликаних токенів у Redis.

    Без нього вихід із системи лише видаляє cookie, а сам токен лишається
    дійсним до кінця строку дії.
    """

    def __init__(self, client):
        self.client = client

    @staticmethod
    def _key(token_id: str) -> str:
        return f"revoked-token:{token_id}"

    def revoke(self, claims: TokenClaims, now: Optional[datetime] = None) -> None:
        if not claims.token_id:
            return
        remaining = claims.expires_at - _timestamp(now)
        if remaining <= 0:
            return
        self.client.setex(self._key(claims.token_id), timedelta(seconds=remaining), "1")

    def is_revoked(self, claims: TokenClaims) -> bool:
        if not claims.token_id:
            return False
        return bool(self.client.exists(self._key(claims.token_id)))


_denylist = None


def get_denylist() -> Optional[TokenDenylist]:
    """
    Повертає список відкликаних токенів, якщо задано REDIS_URL.
    """
    global _denylist
    if not settings.REDIS_URL:
        return None
    if _denylist is None:
        _denylist = TokenDenylist(redis.Redis.from_url(settings.REDIS_URL))
    return _denylist
