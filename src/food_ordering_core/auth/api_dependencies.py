"""FastAPI dependencies for bearer credential authentication.

Provides helpers for FastAPI endpoints to resolve the authenticated principal.
"""

from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from food_ordering_core.auth.credential_service import CredentialService
from food_ordering_core.models.identity_models import Principal

UNAUTHENTICATED_HEADERS = {"WWW-Authenticate": "Bearer"}

# Missing or non-bearer headers resolve to None; callers decide how to fail
bearer_scheme = HTTPBearer(auto_error=False, description="Credential issued by /auth/login")


def extract_bearer_token(credentials: HTTPAuthorizationCredentials | None) -> str | None:
    """Extract the token from parsed bearer credentials.

    Args:
        credentials: Result of the bearer_scheme dependency

    Returns:
        The token, or None if no bearer credential was presented
    """
    if credentials is None:
        return None
    return credentials.credentials.strip() or None


def get_principal_from_credentials(
    credentials: HTTPAuthorizationCredentials | None,
    credential_service: CredentialService | None = None,
) -> Principal:
    """Resolve the principal from bearer credentials.

    Args:
        credentials: Result of the bearer_scheme dependency
        credential_service: Service verifying the credential

    Returns:
        Principal: The authenticated principal

    Raises:
        HTTPException: 401 if the credential is missing, malformed, expired or unknown
    """
    token = extract_bearer_token(credentials)
    if token is None:
        raise HTTPException(
            status_code=401, detail="Not authenticated", headers=UNAUTHENTICATED_HEADERS
        )

    principal = credential_service.verify(token) if credential_service else None
    if principal is None:
        raise HTTPException(
            status_code=401, detail="Not authenticated", headers=UNAUTHENTICATED_HEADERS
        )

    return principal
