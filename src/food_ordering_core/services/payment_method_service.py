"""Payment method service.

Edits to a payment method collection are reconciled against a fresh read of
the gateway's collection, dispatched concurrently as independent operations,
and summarized in a BatchResult. The collection is read again afterwards so
callers never continue from unconfirmed local state.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from food_ordering_core.domain.access_policy import (
    can_delete_payment_method,
    can_manage_global_payment_methods,
    can_manage_own_payment_method,
    enforce,
    filter_allowed,
)
from food_ordering_core.domain.reconciliation import ReconciliationPlan, reconcile_payment_methods
from food_ordering_core.errors import CoreError, ResourceNotFound
from food_ordering_core.models.gateway_models import GatewayOutcome, OutcomeKind
from food_ordering_core.models.identity_models import Principal
from food_ordering_core.models.payment_models import PaymentMethod
from food_ordering_core.observability import traced
from food_ordering_core.observability.metrics import record_payment_method_operation
from food_ordering_core.services.gateway_client import ResourceGatewayClient

logger = logging.getLogger(__name__)


class BatchOperation(str, Enum):
    """Kind of operation dispatched for one payment method."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class OperationResult:
    """Result of a single operation within a batch.

    Attributes:
        operation: What was attempted
        method: Client version for creates and updates, server version for deletes
        kind: Gateway outcome of the operation
        message: Error message if the operation failed, None otherwise
    """

    operation: BatchOperation
    method: PaymentMethod
    kind: OutcomeKind
    message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    @property
    def retain_local_edit(self) -> bool:
        """Whether the client should keep this edit pending.

        Creates and updates that did not apply stay pending. A delete answered
        with "not implemented" is dropped from the local view anyway; other
        failed deletes stay pending.
        """
        if self.succeeded:
            return False
        if self.operation == BatchOperation.DELETE:
            return self.kind != OutcomeKind.NOT_IMPLEMENTED
        return True


@dataclass
class BatchResult:
    """Aggregated result of a reconciliation batch.

    Attributes:
        results: One entry per dispatched operation
        payment_methods: Collection read back from the gateway after the batch
        stale: True when the read-back failed and payment_methods is empty
    """

    results: list[OperationResult] = field(default_factory=list)
    payment_methods: list[PaymentMethod] = field(default_factory=list)
    stale: bool = False

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def not_implemented(self) -> int:
        return sum(1 for r in self.results if r.kind == OutcomeKind.NOT_IMPLEMENTED)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded - self.not_implemented

    @property
    def success(self) -> bool:
        return all(r.succeeded for r in self.results)

    @property
    def pending_edits(self) -> list[PaymentMethod]:
        return [r.method for r in self.results if r.retain_local_edit]


@dataclass
class _Scope:
    """Gateway endpoints and policy for one payment method collection."""

    name: str
    list_methods: Callable[[str], Awaitable[GatewayOutcome]]
    create: Callable[[str, dict[str, Any]], Awaitable[GatewayOutcome]]
    update: Callable[[str, str, dict[str, Any]], Awaitable[GatewayOutcome]]
    delete: Callable[[str, str], Awaitable[GatewayOutcome]]


class PaymentMethodService:
    """Service for reading and reconciling payment method collections.

    Two collections exist: each principal's own methods, and the platform-wide
    methods that only admins manage.
    """

    def __init__(self, gateway: ResourceGatewayClient) -> None:
        """Initialize the PaymentMethodService.

        Args:
            gateway: Client for the resource gateway
        """
        self.gateway = gateway
        self.own_scope = _Scope(
            name="own",
            list_methods=gateway.list_own_payment_methods,
            create=gateway.create_own_payment_method,
            update=gateway.update_own_payment_method,
            delete=gateway.delete_own_payment_method,
        )
        self.global_scope = _Scope(
            name="global",
            list_methods=gateway.list_payment_methods,
            create=gateway.create_payment_method,
            update=gateway.update_payment_method,
            delete=gateway.delete_payment_method,
        )

    # Reads

    @traced("list_own_payment_methods")
    async def list_own(self, principal: Principal, token: str) -> list[PaymentMethod]:
        """List the payment methods owned by the principal."""
        outcome = await self.own_scope.list_methods(token)
        methods = outcome.parse_list(PaymentMethod, "payment_methods")
        return filter_allowed(principal, methods, can_manage_own_payment_method)

    @traced("list_global_payment_methods")
    async def list_global(self, principal: Principal, token: str) -> list[PaymentMethod]:
        """List the platform-wide payment methods.

        Raises:
            AuthorizationFailure: Principal is not an admin
        """
        enforce(can_manage_global_payment_methods(principal), "payment_method", "list")
        outcome = await self.global_scope.list_methods(token)
        return outcome.parse_list(PaymentMethod, "payment_methods")

    # Batch reconciliation

    @traced("reconcile_own_payment_methods")
    async def reconcile_own(
        self, principal: Principal, token: str, client_set: Sequence[PaymentMethod]
    ) -> BatchResult:
        """Apply an edited version of the principal's own collection.

        Args:
            principal: Acting principal
            token: Bearer token forwarded to the gateway
            client_set: The full collection as edited by the principal

        Returns:
            BatchResult with per-operation outcomes and the refreshed collection

        Raises:
            AuthorizationFailure: An entry belongs to another user
            InvalidOperation: The edit is inconsistent (see reconcile_payment_methods)
        """
        server_set = await self.list_own(principal, token)
        return await self._reconcile_own(principal, token, server_set, client_set)

    @traced("reconcile_global_payment_methods")
    async def reconcile_global(
        self, principal: Principal, token: str, client_set: Sequence[PaymentMethod]
    ) -> BatchResult:
        """Apply an edited version of the platform-wide collection.

        Raises:
            AuthorizationFailure: Principal is not an admin
            InvalidOperation: The edit is inconsistent (see reconcile_payment_methods)
        """
        server_set = await self.list_global(principal, token)
        return await self._reconcile_global(principal, token, server_set, client_set)

    async def _reconcile_own(
        self,
        principal: Principal,
        token: str,
        server_set: Sequence[PaymentMethod],
        client_set: Sequence[PaymentMethod],
    ) -> BatchResult:
        for method in client_set:
            enforce(can_manage_own_payment_method(principal, method), "payment_method", "update")

        plan = reconcile_payment_methods(server_set, client_set)
        return await self._apply(self.own_scope, principal, token, plan)

    async def _reconcile_global(
        self,
        principal: Principal,
        token: str,
        server_set: Sequence[PaymentMethod],
        client_set: Sequence[PaymentMethod],
    ) -> BatchResult:
        enforce(can_manage_global_payment_methods(principal), "payment_method", "update")

        plan = reconcile_payment_methods(server_set, client_set)
        return await self._apply(self.global_scope, principal, token, plan)

    # Single-entry edits, expressed as reconciliations of the whole collection

    @traced("add_own_payment_method")
    async def add_own(
        self, principal: Principal, token: str, method: PaymentMethod
    ) -> BatchResult:
        """Add a payment method to the principal's collection.

        Marking the new method primary moves the primary flag to it.
        """
        server_set = await self.list_own(principal, token)
        new_method = method.model_copy(update={"id": None, "owner_id": None})
        return await self._reconcile_own(principal, token, server_set, [*server_set, new_method])

    @traced("update_own_payment_method")
    async def update_own(
        self, principal: Principal, token: str, method_id: str, method: PaymentMethod
    ) -> BatchResult:
        """Replace one payment method in the principal's collection.

        Raises:
            ResourceNotFound: The principal has no method with this id
        """
        server_set = await self.list_own(principal, token)
        client_set = _replace_entry(server_set, method_id, method)
        return await self._reconcile_own(principal, token, server_set, client_set)

    @traced("delete_own_payment_method")
    async def delete_own(self, principal: Principal, token: str, method_id: str) -> BatchResult:
        """Remove one payment method from the principal's collection.

        Raises:
            ResourceNotFound: The principal has no method with this id
            InvalidOperation: The method is the only primary one
        """
        server_set = await self.list_own(principal, token)
        target = _find_entry(server_set, method_id)
        enforce(
            can_delete_payment_method(principal, target, server_set), "payment_method", "delete"
        )
        client_set = [m for m in server_set if m.id != method_id]
        return await self._reconcile_own(principal, token, server_set, client_set)

    @traced("update_global_payment_method")
    async def update_global(
        self, principal: Principal, token: str, method_id: str, method: PaymentMethod
    ) -> BatchResult:
        """Replace one platform-wide payment method.

        Raises:
            AuthorizationFailure: Principal is not an admin
            ResourceNotFound: No platform-wide method has this id
        """
        server_set = await self.list_global(principal, token)
        client_set = _replace_entry(server_set, method_id, method)
        return await self._reconcile_global(principal, token, server_set, client_set)

    # Dispatch

    async def _apply(
        self, scope: _Scope, principal: Principal, token: str, plan: ReconciliationPlan
    ) -> BatchResult:
        if not plan.has_changes:
            logger.info(f"No changes to {scope.name} payment methods for user {principal.id}")
            return BatchResult(payment_methods=list(plan.result))

        logger.info(
            f"Dispatching {plan.operation_count} {scope.name} payment method operations "
            f"for user {principal.id}"
        )

        tasks = []
        for method in plan.to_create:
            tasks.append(
                self._dispatch(
                    BatchOperation.CREATE, method, scope.create(token, method.to_gateway_payload())
                )
            )
        for method in plan.to_update:
            tasks.append(
                self._dispatch(
                    BatchOperation.UPDATE,
                    method,
                    scope.update(token, method.id or "", method.to_gateway_payload()),
                )
            )
        for method in plan.to_delete:
            tasks.append(
                self._dispatch(BatchOperation.DELETE, method, scope.delete(token, method.id or ""))
            )

        results = list(await asyncio.gather(*tasks))
        batch = BatchResult(results=results)
        await self._refresh(scope, token, batch)

        logger.info(
            f"Payment method batch finished: {batch.succeeded} succeeded, "
            f"{batch.failed} failed, {batch.not_implemented} not implemented"
        )
        return batch

    async def _dispatch(
        self,
        operation: BatchOperation,
        method: PaymentMethod,
        call: Awaitable[GatewayOutcome],
    ) -> OperationResult:
        try:
            outcome = await call
        except Exception as e:
            logger.exception(f"Payment method {operation.value} raised unexpectedly: {e}")
            outcome = GatewayOutcome(kind=OutcomeKind.TRANSPORT_FAILURE, message=str(e))

        record_payment_method_operation(operation.value, outcome.kind.value)

        if not outcome.ok:
            logger.warning(
                f"Payment method {operation.value} failed ({outcome.kind.value}): {outcome.message}"
            )

        return OperationResult(
            operation=operation,
            method=method,
            kind=outcome.kind,
            message=outcome.message,
        )

    async def _refresh(self, scope: _Scope, token: str, batch: BatchResult) -> None:
        outcome = await scope.list_methods(token)
        try:
            batch.payment_methods = outcome.parse_list(PaymentMethod, "payment_methods")
        except CoreError as e:
            logger.error(f"Could not re-read {scope.name} payment methods after batch: {e}")
            batch.stale = True


def _find_entry(methods: Sequence[PaymentMethod], method_id: str) -> PaymentMethod:
    for method in methods:
        if method.id == method_id:
            return method
    raise ResourceNotFound(f"Payment method {method_id} not found")


def _replace_entry(
    methods: Sequence[PaymentMethod], method_id: str, replacement: PaymentMethod
) -> list[PaymentMethod]:
    existing = _find_entry(methods, method_id)
    updated = replacement.model_copy(update={"id": method_id, "owner_id": existing.owner_id})
    return [updated if m.id == method_id else m for m in methods]
