"""Account registration, login and user-info lookup."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from gameuser import applog
from gameuser.cache_service import CacheService
from gameuser.messages import LoginResult, UserInfo, UserServiceError


class _UserStore(Protocol):
    def get_user_by_username(self, username: str) -> User | None: ...

    def get_user(self, user_id: int) -> User | None: ...

    def create_user(self, user: User) -> None: ...


class _Authenticator(Protocol):
    def generate_salt(self) -> str: ...

    def hash_password(self, password: str, salt: str) -> str: ...

    def verify_password(self, password: str, password_hash: str, salt: str) -> bool: ...

    def generate_token(self, user_id: int, role: str, email: str,
                       secret_key: str, expire: Any) -> tuple[str, datetime]: ...


class _TokenStore(Protocol):
    def set_token(self, user_id: int, token: str, ttl: float) -> None: ...


@dataclass
class User:
    """A registered account."""

    id: int = 0
    username: str = ""
    password_hash: str = ""
    salt: str = ""
    email: str = ""
    created_at: datetime | None = None
    role: str = "user"
    level: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        names = {f.name for f in dataclasses.fields(cls)}
        values = {key: value for key, value in data.items() if key in names}
        if values.get("created_at"):
            values["created_at"] = datetime.fromisoformat(values["created_at"])
        else:
            values.pop("created_at", None)
        return cls(**values)


class AccountService:
    """Registers users, logs them in and reports their basic info."""

    def __init__(
        self,
        db: _UserStore,
        auth: _Authenticator,
        tokens: _TokenStore,
        cache_service: CacheService,
        next_id: Callable[[], int],
        *,
        secret_key: str,
        token_expire_time: Any,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._db = db
        self._auth = auth
        self._tokens = tokens
        self._cache = cache_service
        self._next_id = next_id
        self._secret_key = secret_key
        self._token_expire_time = token_expire_time
        self._clock = clock

    def register(self, username: str, password: str, email: str) -> int:
        """Create an account and return its new user id."""
        if not username or not password or not email:
            raise UserServiceError("username, password and email are required")
        if self._username_taken(username):
            raise UserServiceError("username already exists")

        salt = self._auth.generate_salt()
        password_hash = self._auth.hash_password(password, salt)
        try:
            user_id = self._next_id()
        except Exception as exc:
            raise UserServiceError(
                f"failed to generate user id: failed to generate snowflake ID: {exc}"
            ) from exc

        user = User(
            id=user_id,
            username=username,
            password_hash=password_hash,
            salt=salt,
            email=email,
            created_at=self._clock(),
            role="user",
        )
        try:
            self._db.create_user(user)
        except Exception as exc:
            raise UserServiceError(f"failed to create user: {exc}") from exc
        return user_id

    def _username_taken(self, username: str) -> bool:
        try:
            return self._db.get_user_by_username(username) is not None
        except Exception:
            return False

    def login(self, username: str, password: str) -> LoginResult:
        """Check the credentials, store a fresh token and return it."""
        try:
            user = self._db.get_user_by_username(username)
        except Exception as exc:
            applog.error("get user by username err", error=str(exc))
            raise UserServiceError("invalid credentials") from exc
        if user is None:
            applog.error("get user by username err", error="user not found")
            raise UserServiceError("invalid credentials")

        if not self._auth.verify_password(password, user.password_hash, user.salt):
            applog.error("password verify err")
            raise UserServiceError("invalid credentials")

        try:
            token, expires_at = self._auth.generate_token(
                user.id, user.role, user.email, self._secret_key, self._token_expire_time
            )
        except Exception as exc:
            applog.error("generate token err", error=str(exc))
            raise UserServiceError("failed to generate token") from exc

        ttl = (expires_at - self._clock()).total_seconds()
        try:
            self._tokens.set_token(user.id, token, ttl)
        except Exception as exc:
            applog.error("set token err", error=str(exc))
            raise UserServiceError("failed to store token") from exc

        return LoginResult(
            user_id=user.id, token=token, expires_at=int(expires_at.timestamp())
        )

    def get_user_info(self, user_id: int) -> UserInfo:
        """Return the id, name and level of ``user_id``."""
        if user_id == 0:
            raise UserServiceError("invalid user id")
        try:
            user = self._cache.get_user_info_with_cache(
                user_id, lambda: self._db.get_user(user_id)
            )
        except Exception as exc:
            raise UserServiceError(f"failed to get user info: {exc}") from exc
        if user is None:
            raise UserServiceError("user not found")
        return UserInfo(user_id=user.id, name=user.username, level=user.level)