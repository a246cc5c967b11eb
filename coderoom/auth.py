"""
Authenticator interface: the core only needs a display name per connection
"""
import hashlib
import hmac
import logging
import secrets
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class AuthResult:
    """Outcome of a login attempt"""

    def __init__(
        self,
        token: Optional[str] = None,
        username: Optional[str] = None,
        error: Optional[str] = None
    ):
        self.token = token
        self.username = username
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {"token": self.token, "username": self.username}


class Authenticator(ABC):
    """Abstract credential checker"""

    @abstractmethod
    def authenticate(self, username: str, password: str) -> AuthResult:
        """
        Check credentials

        Returns:
            AuthResult with an opaque token and display name, or an error string
        """
        pass

    @abstractmethod
    def display_name_for(self, token: Optional[str]) -> Optional[str]:
        """Display name bound to a token, or None if unknown"""
        pass


class InMemoryAuthenticator(Authenticator):
    """Process-local accounts with PBKDF2 password hashes"""

    ITERATIONS = 100_000

    def __init__(self):
        self._accounts: Dict[str, Tuple[bytes, bytes]] = {}
        self._tokens: Dict[str, str] = {}

    def register(self, username: str, password: str) -> AuthResult:
        if not username or not password:
            return AuthResult(error="username and password required")
        if username in self._accounts:
            return AuthResult(error="User already exists")
        salt = secrets.token_bytes(16)
        self._accounts[username] = (salt, self._hash(password, salt))
        logger.info(f"Registered user {username!r}")
        return AuthResult(username=username)

    def authenticate(self, username: str, password: str) -> AuthResult:
        account = self._accounts.get(username)
        if account is None:
            return AuthResult(error="Invalid credentials")
        salt, expected = account
        if not hmac.compare_digest(expected, self._hash(password, salt)):
            return AuthResult(error="Invalid credentials")
        token = secrets.token_urlsafe(24)
        self._tokens[token] = username
        return AuthResult(token=token, username=username)

    def display_name_for(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        return self._tokens.get(token)

    def _hash(self, password: str, salt: bytes) -> bytes:
        return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, self.ITERATIONS)
