"""
Auth Module - User accounts, login and JWT tokens.
==================================================

Users live in a JSON file (``paths.users_file``). Passwords are hashed
with argon2; login issues an HS256 token carrying
``{userId, email, username, iat, exp}``.
"""

import threading
import uuid
from datetime import timedelta
from pathlib import Path
from typing import Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.errors import (
    AuthenticationError,
    ConfigurationError,
    RegistrationError,
)
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import LoginResponse, TokenPayload, User, utc_now
from dorsu_connect.shared.utils import load_json, save_json

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
ACCOUNT_DEACTIVATED = "Account has been deactivated"

ph = PasswordHasher()


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """
    Registers users, checks credentials and issues tokens.

    Example:
        >>> auth = AuthService()
        >>> response = auth.login("student@dorsu.edu.ph", "secret")
        >>> auth.verify_token(response.token).email
        'student@dorsu.edu.ph'
    """

    def __init__(
        self,
        users_file: Optional[Path] = None,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        token_expiry_days: Optional[int] = None,
    ):
        settings = get_settings()
        self.users_file = users_file or settings.resolved_paths.users_file
        self._secret = secret if secret is not None else settings.jwt_secret
        self.algorithm = algorithm or settings.auth.jwt_algorithm
        self.token_expiry = timedelta(days=token_expiry_days or settings.auth.token_expiry_days)
        self._lock = threading.Lock()

    @property
    def secret(self) -> str:
        if not self._secret:
            raise ConfigurationError("JWT secret not found. Set JWT_SECRET environment variable.")
        return self._secret

    # ─────────────────────────────────────────────────────────────────────────
    # User Store
    # ─────────────────────────────────────────────────────────────────────────

    def _read_users(self) -> list[User]:
        if not self.users_file.exists():
            return []
        data = load_json(self.users_file)
        records = data.get("users", []) if isinstance(data, dict) else data
        return [User.model_validate(record) for record in records]

    def _write_users(self, users: list[User]) -> None:
        save_json(self.users_file, {"users": [u.model_dump(mode="json") for u in users]})

    def find_user(self, email: str) -> Optional[User]:
        email = normalize_email(email)
        with self._lock:
            return next((u for u in self._read_users() if u.email == email), None)

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            return next((u for u in self._read_users() if u.id == user_id), None)

    # ─────────────────────────────────────────────────────────────────────────
    # Registration and Login
    # ─────────────────────────────────────────────────────────────────────────

    def register(self, email: str, username: str, password: str, role: str = "user") -> LoginResponse:
        """
        Create an account and return a token for it.

        Raises:
            RegistrationError: Missing fields or an email already in use
        """
        email = normalize_email(email or "")
        username = (username or "").strip()
        if not email or not username or not password:
            raise RegistrationError("Email, username and password are required")

        with self._lock:
            users = self._read_users()
            if any(u.email == email for u in users):
                raise RegistrationError("User with this email already exists")

            user = User(
                id=uuid.uuid4().hex,
                username=username,
                email=email,
                password_hash=ph.hash(password),
                role=role,
            )
            users.append(user)
            self._write_users(users)

        logger.info(f"User registered: {email}")
        return LoginResponse(user=user.to_public(), token=self.create_token(user))

    def login(self, email: str, password: str) -> LoginResponse:
        """
        Check credentials and issue a token.

        Raises:
            AuthenticationError: Unknown email, wrong password or a
                deactivated account
        """
        email = normalize_email(email)

        with self._lock:
            users = self._read_users()
            user = next((u for u in users if u.email == email), None)
            if user is None:
                logger.info(f"Login failed for unknown email: {email}")
                raise AuthenticationError(INVALID_CREDENTIALS)
            if not user.is_active:
                raise AuthenticationError(ACCOUNT_DEACTIVATED)
            if not self.verify_password(password, user.password_hash):
                logger.info(f"Login failed for {email}: wrong password")
                raise AuthenticationError(INVALID_CREDENTIALS)

            user.last_login = utc_now()
            if ph.check_needs_rehash(user.password_hash):
                user.password_hash = ph.hash(password)
            self._write_users(users)

        logger.info(f"User logged in: {email}")
        return LoginResponse(user=user.to_public(), token=self.create_token(user))

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        """
        Replace a user's password after checking the current one.

        Raises:
            AuthenticationError: The current password is wrong or the user
                no longer exists
            RegistrationError: The new password is empty
        """
        if not new_password:
            raise RegistrationError("New password is required")

        with self._lock:
            users = self._read_users()
            stored = next((u for u in users if u.id == user.id), None)
            if stored is None:
                raise AuthenticationError("Invalid token")
            if not self.verify_password(current_password or "", stored.password_hash):
                logger.info(f"Password change refused for {stored.email}: wrong password")
                raise AuthenticationError("Current password is incorrect")

            stored.password_hash = ph.hash(new_password)
            self._write_users(users)

        logger.info(f"Password changed: {stored.email}")

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        try:
            return ph.verify(password_hash, password)
        except (VerificationError, InvalidHashError):
            return False

    # ─────────────────────────────────────────────────────────────────────────
    # Tokens
    # ─────────────────────────────────────────────────────────────────────────

    def create_token(self, user: User) -> str:
        now = utc_now()
        payload = {
            "userId": user.id,
            "email": user.email,
            "username": user.username,
            "iat": int(now.timestamp()),
            "exp": int((now + self.token_expiry).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> TokenPayload:
        """
        Decode and validate a token.

        Raises:
            AuthenticationError: Expired, malformed or wrongly signed token
        """
        try:
            decoded = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["userId", "email", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid token")
        return TokenPayload.model_validate({"username": "", **decoded})

    def get_user_from_header(self, authorization: Optional[str]) -> User:
        """
        Resolve an ``Authorization`` header value to an active user.

        A bare token without the ``Bearer`` prefix is accepted too.
        """
        if not authorization:
            raise AuthenticationError("No authorization header")

        token = authorization[7:] if authorization.startswith("Bearer ") else authorization
        payload = self.verify_token(token.strip())

        user = self.get_user_by_id(payload.user_id)
        if user is None:
            raise AuthenticationError("Invalid token")
        if not user.is_active:
            raise AuthenticationError(ACCOUNT_DEACTIVATED)
        return user


_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
