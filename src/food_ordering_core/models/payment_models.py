"""Payment method models.

Payment methods live either in a user's own set or in the platform-wide set
managed by admins. In any non-empty set exactly one method is primary.
"""

import re
from enum import Enum

from pydantic import BaseModel, EmailStr, Field, model_validator

LAST4_PATTERN = re.compile(r"[0-9]{4}")


class PaymentMethodType(str, Enum):
    """Supported payment method types."""

    CREDIT_CARD = "Credit Card"
    PAYPAL = "PayPal"
    GOOGLE_PAY = "Google Pay"


class PaymentMethod(BaseModel):
    """Payment method model.

    The identifying detail depends on the type: the last four card digits for
    credit cards, an account email for PayPal and Google Pay.
    """

    id: str | None = Field(None, description="Gateway identifier, None for unsaved entries")
    type: PaymentMethodType = Field(..., description="Payment method type")
    last4: str | None = Field(None, description="Last four card digits")
    email: EmailStr | None = Field(None, description="Account email")
    is_primary: bool = Field(default=False, description="Whether this is the primary method")
    owner_id: str | None = Field(None, description="Owning user, None for the platform set")

    @model_validator(mode="after")
    def validate_detail(self) -> "PaymentMethod":
        """Validate that the detail matching the type is present."""
        if self.type == PaymentMethodType.CREDIT_CARD:
            if not self.last4 or not LAST4_PATTERN.fullmatch(self.last4):
                raise ValueError("Credit cards require last4 with exactly four digits")
        elif not self.email:
            raise ValueError(f"{self.type.value} requires an account email")
        return self

    @property
    def detail(self) -> str:
        """Identifying detail shown to users."""
        if self.type == PaymentMethodType.CREDIT_CARD:
            return self.last4 or ""
        return self.email or ""

    def canonical_projection(self) -> tuple[str, str, bool]:
        """Mutable fields compared during reconciliation."""
        return (self.type.value, self.detail, self.is_primary)

    def to_gateway_payload(self) -> dict[str, str | bool]:
        """Convert to the request body accepted by the gateway.

        Returns:
            dict: Payload without id and owner, which the gateway assigns
        """
        payload: dict[str, str | bool] = {
            "type": self.type.value,
            "is_primary": self.is_primary,
        }

        if self.type == PaymentMethodType.CREDIT_CARD:
            payload["last4"] = self.last4 or ""
        else:
            payload["email"] = self.email or ""

        return payload
