"""Identity models: users, roles, principals and credential claims.

A User is the directory record for an account. A Principal is the immutable
snapshot of an authenticated actor that every policy decision is made against.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class Role(str, Enum):
    """Enumeration of platform roles."""

    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"


def _check_region_for_role(role: Role, region: str | None) -> None:
    """Validate that region presence matches the role.

    Managers and members are always scoped to a region, admins never are.
    """
    if role == Role.ADMIN and region is not None:
        raise ValueError("ADMIN accounts are not scoped to a region")
    if role != Role.ADMIN and not region:
        raise ValueError(f"{role.value} accounts require a region")


class User(BaseModel):
    """User directory record.

    Stored in DynamoDB with id as partition key.
    """

    id: str = Field(..., description="Unique user identifier")
    name: str = Field(..., description="Display name")
    email: EmailStr = Field(..., description="Email address")
    role: Role = Field(..., description="Platform role")
    region: str | None = Field(None, description="Region for MANAGER and MEMBER accounts")
    avatar_url: str | None = Field(None, description="URL to avatar image")

    @model_validator(mode="after")
    def validate_region(self) -> "User":
        """Validate that region is present exactly for region-scoped roles."""
        _check_region_for_role(self.role, self.region)
        return self

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "User":
        """Create User from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            User: Parsed model instance
        """
        return cls(
            id=item["id"],
            name=item["name"],
            email=item["email"],
            role=Role(item["role"]),
            region=item.get("region"),
            avatar_url=item.get("avatar_url"),
        )


class Principal(BaseModel):
    """Authenticated actor performing an operation.

    Immutable once created; a new Principal is built on every login and on
    every credential verification.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="User identifier of the actor")
    role: Role = Field(..., description="Role of the actor")
    region: str | None = Field(None, description="Region scope, None for org-wide admins")
    email: EmailStr | None = Field(None, description="Email of the actor")
    name: str | None = Field(None, description="Display name of the actor")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class CredentialClaims(BaseModel):
    """Snapshot serialized inside a signed credential."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    email: EmailStr
    name: str
    region: str | None = None
    issued_at: datetime
    expires_at: datetime

    @model_validator(mode="after")
    def validate_claims(self) -> "CredentialClaims":
        """Validate region scoping and the validity window."""
        _check_region_for_role(self.role, self.region)
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be after issued_at")
        return self

    def to_principal(self) -> Principal:
        return Principal(
            id=self.id,
            role=self.role,
            region=self.region,
            email=self.email,
            name=self.name,
        )


class IssuedCredential(BaseModel):
    """Credential handed to a client at login."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
