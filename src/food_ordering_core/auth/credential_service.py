"""Signed, time-limited credentials.

A credential is an itsdangerous URL-safe token carrying a snapshot of the
user's identity, role and region plus its validity window. Verification fails
closed: any problem yields None and the caller treats the request as
unauthenticated without learning why.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from itsdangerous import BadSignature, URLSafeTimedSerializer
from pydantic import ValidationError

from food_ordering_core.models.identity_models import (
    CredentialClaims,
    IssuedCredential,
    Principal,
    User,
)
from food_ordering_core.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

CREDENTIAL_SALT = "food-ordering-core.credential"
DEFAULT_TTL_SECONDS = 3600


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CredentialService:
    """Issues and verifies bearer credentials.

    Verification is read-only: it never mutates the credential or the user
    directory, so verifying the same token twice gives the same answer.
    """

    def __init__(
        self,
        secret_key: str,
        user_repository: UserRepository,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the credential service.

        Args:
            secret_key: Key used to sign credentials
            user_repository: Directory used to look up credential subjects
            ttl_seconds: Lifetime of issued credentials
            clock: Source of the current time (timezone-aware)

        Raises:
            ValueError: If the secret key is empty or the TTL is not positive
        """
        if not secret_key:
            raise ValueError("A secret key must be provided")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        self.serializer = URLSafeTimedSerializer(secret_key, salt=CREDENTIAL_SALT)
        self.user_repository = user_repository
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def issue(self, user: User) -> IssuedCredential:
        """Issue a credential for a user at login.

        Args:
            user: Directory record of the user signing in

        Returns:
            IssuedCredential with the signed token and its expiry
        """
        issued_at = self.clock()
        claims = CredentialClaims(
            id=user.id,
            role=user.role,
            email=user.email,
            name=user.name,
            region=user.region,
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=self.ttl_seconds),
        )
        token = self.serializer.dumps(claims.model_dump(mode="json"))

        logger.info(f"Issued credential for user {user.id} ({user.role.value})")
        return IssuedCredential(access_token=token, expires_at=claims.expires_at)

    def authenticate(self, email: str) -> IssuedCredential | None:
        """Look up the user signing in by email and issue a credential.

        Password verification belongs to the identity provider in front of
        this service; only the directory lookup happens here.

        Args:
            email: Email address entered at sign-in

        Returns:
            IssuedCredential, or None if no single user matches
        """
        user = self.user_repository.find_user_by_email(email)
        if user is None:
            logger.info("Login rejected: no matching user")
            return None
        return self.issue(user)

    def verify(self, token: str | None) -> Principal | None:
        """Verify a credential and resolve its principal.

        Args:
            token: Bearer token presented by the client

        Returns:
            Principal if the credential is valid, None otherwise
        """
        if not token:
            return None

        try:
            payload = self.serializer.loads(token, max_age=self.ttl_seconds)
            claims = CredentialClaims.model_validate(payload)
        except BadSignature as e:
            logger.debug(f"Credential rejected: bad signature or encoding ({type(e).__name__})")
            return None
        except ValidationError:
            logger.debug("Credential rejected: malformed claims")
            return None

        if claims.expires_at <= self.clock():
            logger.debug(f"Credential rejected: expired for user {claims.id}")
            return None

        user = self.user_repository.get_user(claims.id)
        if user is None:
            logger.info(f"Credential rejected: unknown subject {claims.id}")
            return None

        if user.role != claims.role or user.region != claims.region:
            logger.info(f"Credential rejected: role or region changed for user {claims.id}")
            return None

        return claims.to_principal()
