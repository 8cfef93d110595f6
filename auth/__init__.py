"""Authentication module for bearer session tokens.

Users sign in with the external identity provider; this module only issues and
verifies the service's session JWTs and broadcasts authentication events.

This module provides:
1. Session token issue and verification (HS256 JWT)
2. Auth-state broadcast to subscribers (the profile upsert is one)
3. FastAPI dependencies for protecting routes
"""

import inspect
import logging
import secrets
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

# Configure logging
logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
SESSION_EXPIRY_DAYS = 30

class AuthError(Exception):
    """Base exception for authentication errors."""
    pass

class InvalidTokenError(AuthError):
    """Raised when a session token is malformed or its signature is wrong."""
    pass

class SessionExpiredError(AuthError):
    """Raised when a session has expired."""
    pass

@dataclass(frozen=True)
class AuthUser:
    """Identity of an authenticated user as reported by the identity provider."""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

Subscriber = Callable[[AuthUser], Union[None, Awaitable[None]]]

class AuthManager:
    """Issues and verifies session tokens and broadcasts auth events."""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: str = JWT_ALGORITHM,
        session_expiry_days: int = SESSION_EXPIRY_DAYS
    ):
        """Initialize auth manager.

        Args:
            secret: Signing secret. A random one is generated when empty, which
                    invalidates all sessions on restart.
            algorithm: JWT algorithm
            session_expiry_days: Session lifetime
        """
        if not secret:
            logger.warning("No jwt_secret configured, sessions will not survive a restart")
        self.secret = secret or secrets.token_urlsafe(32)
        self.algorithm = algorithm
        self.session_expiry_days = session_expiry_days
        self._subscribers: List[Subscriber] = []

    def issue_token(self, user: AuthUser) -> Dict[str, Any]:
        """Create a session token for a user.

        Returns:
            Dict containing:
                - token: Session token for future requests
                - expires_at: Session expiration timestamp
        """
        expires_at = datetime.now(timezone.utc) + timedelta(days=self.session_expiry_days)
        claims = {
            'sub': user.uid,
            'email': user.email,
            'name': user.display_name,
            'picture': user.photo_url,
            'exp': int(expires_at.timestamp())
        }
        return {
            'token': jwt.encode(claims, self.secret, algorithm=self.algorithm),
            'expires_at': expires_at.isoformat()
        }

    def verify_token(self, token: str) -> AuthUser:
        """Verify a session token.

        Raises:
            SessionExpiredError: If the token has expired
            InvalidTokenError: If the token is invalid
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise SessionExpiredError("Session has expired")
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token: {str(e)}")

        uid = payload.get('sub')
        if not uid:
            raise InvalidTokenError("Invalid token: missing subject")

        return AuthUser(
            uid=uid,
            email=payload.get('email'),
            display_name=payload.get('name'),
            photo_url=payload.get('picture')
        )

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for authentication events.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def authenticate(self, token: str) -> AuthUser:
        """Verify a token and notify subscribers of the authenticated user.

        A failing subscriber is logged and does not fail the sign-in.
        """
        user = self.verify_token(token)
        for callback in list(self._subscribers):
            try:
                result = callback(user)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Auth subscriber {getattr(callback, '__name__', callback)} failed: {e}")
        logger.info(f"Authenticated user {user.uid}")
        return user

_manager: Optional[AuthManager] = None

def get_auth_manager() -> AuthManager:
    """Get the shared auth manager configured from settings."""
    global _manager
    if _manager is None:
        from config import settings_conf
        _manager = AuthManager(
            secret=settings_conf['jwt_secret'],
            session_expiry_days=settings_conf['session_expiry_days']
        )
    return _manager

# FastAPI security schemes
auth_scheme = HTTPBearer(
    auto_error=True,  # Return 401 automatically if token is missing
    description="JWT Bearer token required"
)
optional_auth_scheme = HTTPBearer(auto_error=False)

def _verify_or_401(manager: AuthManager, token: str) -> AuthUser:
    try:
        return manager.verify_token(token)
    except SessionExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has expired"
        )
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
    manager: AuthManager = Depends(get_auth_manager)
) -> AuthUser:
    """FastAPI dependency for getting authenticated user.

    Raises:
        HTTPException: If authentication fails
    """
    return _verify_or_401(manager, credentials.credentials)

async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_auth_scheme),
    manager: AuthManager = Depends(get_auth_manager)
) -> Optional[AuthUser]:
    """Like get_current_user, but anonymous requests get None."""
    if credentials is None:
        return None
    return _verify_or_401(manager, credentials.credentials)

# Export public interface
__all__ = [
    'AuthUser',
    'AuthManager',
    'get_auth_manager',
    'get_current_user',
    'get_optional_user',
    'AuthError',
    'InvalidTokenError',
    'SessionExpiredError'
]
