"""
Tests for Auth Module.
======================

Tests for:
- AuthService: Registration, login, password changes and hashing
- JWT tokens: Creation, verification, expiry
- Authorization header resolution
"""

import jwt
import pytest


@pytest.fixture
def auth(temp_dir):
    from dorsu_connect.auth.service import AuthService

    return AuthService(users_file=temp_dir / "users.json", secret="test-secret")


@pytest.fixture
def registered(auth):
    """An account for student@dorsu.edu.ph / correct-horse."""
    return auth.register("Student@DOrSU.edu.ph", "student1", "correct-horse")


# ─────────────────────────────────────────────────────────────────────────────
# Registration Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestRegistration:
    """Tests for AuthService.register."""

    def test_register(self, auth, registered):
        """Test creating an account."""
        assert registered.success
        assert registered.user.email == "student@dorsu.edu.ph"
        assert registered.user.username == "student1"
        assert registered.token

        stored = auth.find_user("student@dorsu.edu.ph")
        assert stored is not None
        assert stored.password_hash.startswith("$argon2")
        assert "correct-horse" not in stored.password_hash

    def test_duplicate_email(self, auth, registered):
        """Test that emails are unique regardless of case."""
        from dorsu_connect.shared.errors import RegistrationError

        with pytest.raises(RegistrationError, match="already exists"):
            auth.register("STUDENT@dorsu.edu.ph", "other", "password")

    def test_missing_fields(self, auth):
        """Test that all fields are required."""
        from dorsu_connect.shared.errors import RegistrationError

        with pytest.raises(RegistrationError):
            auth.register("a@dorsu.edu.ph", "", "password")


# ─────────────────────────────────────────────────────────────────────────────
# Login Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestLogin:
    """Tests for AuthService.login."""

    def test_login(self, auth, registered):
        """Test a successful login."""
        response = auth.login("  student@dorsu.edu.ph ", "correct-horse")

        assert response.success
        assert response.user.id == registered.user.id
        assert auth.find_user("student@dorsu.edu.ph").last_login is not None

    def test_login_response_shape(self, auth, registered):
        """Test the camelCase JSON body."""
        body = auth.login("student@dorsu.edu.ph", "correct-horse").model_dump(mode="json", by_alias=True)

        assert set(body) == {"success", "user", "token"}
        assert set(body["user"]) == {"id", "username", "email", "role", "createdAt"}

    def test_wrong_password(self, auth, registered):
        """Test that a wrong password is rejected with the generic message."""
        from dorsu_connect.shared.errors import AuthenticationError

        with pytest.raises(AuthenticationError) as exc_info:
            auth.login("student@dorsu.edu.ph", "wrong")

        assert exc_info.value.message == "Invalid email or password"

    def test_unknown_email(self, auth):
        """Test that unknown emails get the same message as wrong passwords."""
        from dorsu_connect.shared.errors import AuthenticationError

        with pytest.raises(AuthenticationError) as exc_info:
            auth.login("nobody@dorsu.edu.ph", "whatever")

        assert exc_info.value.message == "Invalid email or password"

    def test_deactivated(self, auth, registered):
        """Test that deactivated accounts cannot log in."""
        from dorsu_connect.shared.errors import AuthenticationError

        users = auth._read_users()
        users[0].is_active = False
        auth._write_users(users)

        with pytest.raises(AuthenticationError, match="deactivated"):
            auth.login("student@dorsu.edu.ph", "correct-horse")

    def test_verify_password(self):
        """Test password verification, including malformed hashes."""
        from dorsu_connect.auth.service import AuthService, ph

        password_hash = ph.hash("secret")

        assert AuthService.verify_password("secret", password_hash)
        assert not AuthService.verify_password("other", password_hash)
        assert not AuthService.verify_password("secret", "not-a-hash")


class TestChangePassword:
    """Tests for AuthService.change_password."""

    def test_change_password(self, auth, registered):
        """Test that the new password replaces the old one."""
        from dorsu_connect.shared.errors import AuthenticationError

        user = auth.find_user("student@dorsu.edu.ph")
        auth.change_password(user, "correct-horse", "battery-staple")

        assert auth.login("student@dorsu.edu.ph", "battery-staple").success
        with pytest.raises(AuthenticationError):
            auth.login("student@dorsu.edu.ph", "correct-horse")

    def test_wrong_current_password(self, auth, registered):
        """Test that the current password must match."""
        from dorsu_connect.shared.errors import AuthenticationError

        user = auth.find_user("student@dorsu.edu.ph")

        with pytest.raises(AuthenticationError, match="Current password is incorrect"):
            auth.change_password(user, "nope", "battery-staple")
        assert auth.login("student@dorsu.edu.ph", "correct-horse").success

    def test_empty_new_password(self, auth, registered):
        """Test that an empty new password is refused."""
        from dorsu_connect.shared.errors import RegistrationError

        user = auth.find_user("student@dorsu.edu.ph")

        with pytest.raises(RegistrationError, match="New password is required"):
            auth.change_password(user, "correct-horse", "")

    def test_deleted_user(self, auth, registered):
        """Test that a user removed from the store cannot change a password."""
        from dorsu_connect.shared.errors import AuthenticationError

        user = auth.find_user("student@dorsu.edu.ph")
        auth._write_users([])

        with pytest.raises(AuthenticationError):
            auth.change_password(user, "correct-horse", "battery-staple")


# ─────────────────────────────────────────────────────────────────────────────
# Token Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestTokens:
    """Tests for JWT handling."""

    def test_token_claims(self, auth, registered):
        """Test the token payload."""
        payload = auth.verify_token(registered.token)

        assert payload.user_id == registered.user.id
        assert payload.email == "student@dorsu.edu.ph"
        assert payload.username == "student1"
        assert payload.exp - payload.iat == 7 * 24 * 3600

    def test_wrong_secret(self, temp_dir, auth, registered):
        """Test that tokens signed with another secret are rejected."""
        from dorsu_connect.auth.service import AuthService
        from dorsu_connect.shared.errors import AuthenticationError

        other = AuthService(users_file=temp_dir / "users.json", secret="other-secret")

        with pytest.raises(AuthenticationError, match="Invalid token"):
            other.verify_token(registered.token)

    def test_expired(self, auth):
        """Test that expired tokens are rejected."""
        from dorsu_connect.shared.errors import AuthenticationError

        token = jwt.encode(
            {"userId": "u1", "email": "a@b.c", "iat": 1, "exp": 2},
            "test-secret",
            algorithm="HS256",
        )

        with pytest.raises(AuthenticationError, match="expired"):
            auth.verify_token(token)

    def test_missing_claims(self, auth):
        """Test that tokens without required claims are rejected."""
        from dorsu_connect.shared.errors import AuthenticationError

        token = jwt.encode({"email": "a@b.c"}, "test-secret", algorithm="HS256")

        with pytest.raises(AuthenticationError, match="Invalid token"):
            auth.verify_token(token)

    def test_missing_secret(self, temp_dir):
        """Test that signing without a secret is a configuration error."""
        from dorsu_connect.auth.service import AuthService
        from dorsu_connect.shared.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            _ = AuthService(users_file=temp_dir / "users.json", secret="").secret

    def test_header(self, auth, registered):
        """Test resolving Bearer and bare tokens."""
        assert auth.get_user_from_header(f"Bearer {registered.token}").id == registered.user.id
        assert auth.get_user_from_header(registered.token).id == registered.user.id

    def test_header_missing(self, auth):
        """Test that a missing header is rejected."""
        from dorsu_connect.shared.errors import AuthenticationError

        with pytest.raises(AuthenticationError, match="No authorization header"):
            auth.get_user_from_header(None)

    def test_header_deleted_user(self, temp_dir, auth, registered):
        """Test that tokens for removed users are rejected."""
        from dorsu_connect.shared.errors import AuthenticationError

        auth._write_users([])

        with pytest.raises(AuthenticationError):
            auth.get_user_from_header(f"Bearer {registered.token}")
