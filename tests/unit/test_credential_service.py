"""Unit tests for CredentialService."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from itsdangerous import URLSafeTimedSerializer

from food_ordering_core.auth.credential_service import CREDENTIAL_SALT, CredentialService
from food_ordering_core.models.identity_models import Principal, Role, User
from food_ordering_core.repositories.user_repository import UserRepository

SECRET = "test-secret-key"


class FakeClock:
    """Controllable clock returning timezone-aware datetimes."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.mark.unit
class TestCredentialService:
    """Test suite for CredentialService."""

    @pytest.fixture
    def clock(self) -> FakeClock:
        """Clock pinned to the current time."""
        return FakeClock(datetime.now(UTC))

    @pytest.fixture
    def mock_repository(self, member_user: User) -> MagicMock:
        """User directory returning the member user."""
        repository = MagicMock(spec=UserRepository)
        repository.get_user.return_value = member_user
        repository.find_user_by_email.return_value = member_user
        return repository

    @pytest.fixture
    def service(self, mock_repository: MagicMock, clock: FakeClock) -> CredentialService:
        """CredentialService with a one hour TTL."""
        return CredentialService(
            secret_key=SECRET, user_repository=mock_repository, ttl_seconds=3600, clock=clock
        )

    def test_rejects_empty_secret(self, mock_repository: MagicMock) -> None:
        """Test that an empty secret key is rejected."""
        with pytest.raises(ValueError, match="secret key"):
            CredentialService(secret_key="", user_repository=mock_repository)

    def test_rejects_non_positive_ttl(self, mock_repository: MagicMock) -> None:
        """Test that a zero TTL is rejected."""
        with pytest.raises(ValueError, match="ttl_seconds"):
            CredentialService(secret_key=SECRET, user_repository=mock_repository, ttl_seconds=0)

    def test_issue_and_verify(
        self, service: CredentialService, member_user: User, clock: FakeClock
    ) -> None:
        """Test that an issued credential verifies to the user's principal."""
        credential = service.issue(member_user)

        assert credential.token_type == "bearer"
        assert credential.expires_at == clock.now + timedelta(hours=1)

        principal = service.verify(credential.access_token)

        assert principal == Principal(
            id="user_member_north",
            role=Role.MEMBER,
            region="North",
            email="member.north@example.com",
            name="Mia Member",
        )

    def test_verify_is_repeatable(self, service: CredentialService, member_user: User) -> None:
        """Test that verification has no side effects."""
        token = service.issue(member_user).access_token

        assert service.verify(token) == service.verify(token)

    def test_expired_credential_rejected(
        self, service: CredentialService, member_user: User, clock: FakeClock
    ) -> None:
        """Test that a credential past its expiry never yields a principal."""
        token = service.issue(member_user).access_token

        clock.now = clock.now + timedelta(hours=1, seconds=1)

        assert service.verify(token) is None

    def test_expiry_in_past_rejected_even_with_valid_signature(
        self, mock_repository: MagicMock, clock: FakeClock
    ) -> None:
        """Test a well-formed, correctly signed payload whose expiry has passed."""
        serializer = URLSafeTimedSerializer(SECRET, salt=CREDENTIAL_SALT)
        issued = clock.now - timedelta(hours=2)
        token = serializer.dumps(
            {
                "id": "user_member_north",
                "role": "MEMBER",
                "email": "member.north@example.com",
                "name": "Mia Member",
                "region": "North",
                "issued_at": issued.isoformat(),
                "expires_at": (issued + timedelta(hours=1)).isoformat(),
            }
        )
        service = CredentialService(
            secret_key=SECRET, user_repository=mock_repository, ttl_seconds=86400, clock=clock
        )

        assert service.verify(token) is None

    def test_tampered_token_rejected(self, service: CredentialService, member_user: User) -> None:
        """Test that a modified token fails signature verification."""
        token = service.issue(member_user).access_token
        tampered = ("x" if token[0] != "x" else "y") + token[1:]

        assert service.verify(tampered) is None

    def test_wrong_key_rejected(
        self, mock_repository: MagicMock, member_user: User, clock: FakeClock
    ) -> None:
        """Test that credentials signed with another key are rejected."""
        other = CredentialService(
            secret_key="another-key", user_repository=mock_repository, clock=clock
        )
        token = other.issue(member_user).access_token

        service = CredentialService(
            secret_key=SECRET, user_repository=mock_repository, clock=clock
        )

        assert service.verify(token) is None

    @pytest.mark.parametrize("token", [None, "", "garbage", "a.b.c"])
    def test_malformed_tokens_rejected(self, service: CredentialService, token: str | None) -> None:
        """Test that malformed tokens are treated as absent."""
        assert service.verify(token) is None

    def test_malformed_claims_rejected(
        self, mock_repository: MagicMock, clock: FakeClock
    ) -> None:
        """Test that a signed payload with invalid claims is rejected."""
        serializer = URLSafeTimedSerializer(SECRET, salt=CREDENTIAL_SALT)
        token = serializer.dumps({"id": "user_member_north", "role": "OWNER"})
        service = CredentialService(
            secret_key=SECRET, user_repository=mock_repository, clock=clock
        )

        assert service.verify(token) is None

    def test_unknown_subject_rejected(
        self, service: CredentialService, member_user: User, mock_repository: MagicMock
    ) -> None:
        """Test that credentials for deleted users are rejected."""
        token = service.issue(member_user).access_token
        mock_repository.get_user.return_value = None

        assert service.verify(token) is None

    def test_changed_region_rejected(
        self, service: CredentialService, member_user: User, mock_repository: MagicMock
    ) -> None:
        """Test that a credential is invalidated when the user's region changes."""
        token = service.issue(member_user).access_token
        mock_repository.get_user.return_value = member_user.model_copy(update={"region": "South"})

        assert service.verify(token) is None

    def test_authenticate_by_email(
        self, service: CredentialService, mock_repository: MagicMock
    ) -> None:
        """Test signing in with a known email."""
        credential = service.authenticate("member.north@example.com")

        assert credential is not None
        mock_repository.find_user_by_email.assert_called_once_with("member.north@example.com")
        assert service.verify(credential.access_token) is not None

    def test_authenticate_unknown_email(
        self, service: CredentialService, mock_repository: MagicMock
    ) -> None:
        """Test that unknown emails do not receive a credential."""
        mock_repository.find_user_by_email.return_value = None

        assert service.authenticate("nobody@example.com") is None
