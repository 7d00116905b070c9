"""Outcome models for calls against the resource gateway."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from food_ordering_core.errors import (
    AuthenticationFailure,
    AuthorizationFailure,
    DenialReason,
    FeatureNotImplemented,
    InvalidOperation,
    ResourceNotFound,
    TransportFailure,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class OutcomeKind(str, Enum):
    """Classification of a gateway response."""

    SUCCESS = "success"
    NOT_IMPLEMENTED = "not_implemented"
    VALIDATION_FAILURE = "validation_failure"
    AUTHENTICATION_FAILURE = "authentication_failure"
    AUTHORIZATION_FAILURE = "authorization_failure"
    NOT_FOUND = "not_found"
    TRANSPORT_FAILURE = "transport_failure"


@dataclass
class GatewayOutcome:
    """Result of a single gateway call.

    Attributes:
        kind: Classification of the response
        status_code: HTTP status code, None when no response was received
        data: Parsed JSON body on success, None otherwise
        message: Error message from the gateway or transport, None on success
    """

    kind: OutcomeKind
    status_code: int | None = None
    data: Any = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    def raise_for_kind(self) -> None:
        """Raise the core error matching a non-success outcome.

        Raises:
            AuthenticationFailure: Gateway rejected or did not receive the credential
            AuthorizationFailure: Gateway denied access
            ResourceNotFound: Resource does not exist
            InvalidOperation: Gateway rejected the payload
            FeatureNotImplemented: Gateway endpoint is a stub
            TransportFailure: Network or parse failure
        """
        if self.kind == OutcomeKind.SUCCESS:
            return
        if self.kind == OutcomeKind.AUTHENTICATION_FAILURE:
            raise AuthenticationFailure()
        if self.kind == OutcomeKind.AUTHORIZATION_FAILURE:
            # The gateway does not say why; role is the coarsest tag available.
            raise AuthorizationFailure(DenialReason.WRONG_ROLE, self.message)
        if self.kind == OutcomeKind.NOT_FOUND:
            raise ResourceNotFound(self.message)
        if self.kind == OutcomeKind.VALIDATION_FAILURE:
            raise InvalidOperation(self.message)
        if self.kind == OutcomeKind.NOT_IMPLEMENTED:
            raise FeatureNotImplemented()
        raise TransportFailure(self.message)

    def parse(self, model: type[M]) -> M:
        """Validate the body of a successful outcome as a single record.

        Raises:
            TransportFailure: The body is missing or does not validate
            CoreError: Any error raised by raise_for_kind for non-success outcomes
        """
        self.raise_for_kind()
        if self.data is None:
            raise TransportFailure(f"Gateway returned no {model.__name__}")
        try:
            return model.model_validate(self.data)
        except ValidationError as e:
            raise TransportFailure(
                f"Gateway returned an invalid {model.__name__} ({e.error_count()} errors)"
            ) from e

    def parse_list(self, model: type[M], key: str) -> list[M]:
        """Validate the body of a successful outcome as a collection.

        The body may be a bare list or an object holding the list under `key`.
        Records that fail validation are logged and left out, so one corrupt
        record cannot hide the rest of the collection.

        Raises:
            TransportFailure: The body is not a collection
            CoreError: Any error raised by raise_for_kind for non-success outcomes
        """
        self.raise_for_kind()
        records = self.data.get(key, []) if isinstance(self.data, dict) else self.data
        if records is None:
            return []
        if not isinstance(records, list):
            raise TransportFailure(f"Gateway returned an invalid {model.__name__} collection")

        parsed: list[M] = []
        for record in records:
            try:
                parsed.append(model.model_validate(record))
            except ValidationError as e:
                logger.error(
                    f"Skipping invalid {model.__name__} from gateway ({e.error_count()} errors)"
                )
        return parsed
