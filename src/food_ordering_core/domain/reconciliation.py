"""Reconciliation of a client-edited payment method collection.

Given the collection last read from the gateway (the server set) and the
collection a user submitted after editing (the client set), compute which
entries must be created, updated and deleted so the gateway ends up holding
the submitted collection, with exactly one primary method.

The computation is pure: the same inputs always produce the same plan.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from food_ordering_core.errors import InvalidOperation
from food_ordering_core.models.payment_models import PaymentMethod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationPlan:
    """Operations that bring the server set in line with the client set.

    Attributes:
        to_create: New entries, without ids, in submission order
        to_update: Client versions of entries whose mutable fields changed
        to_delete: Server entries missing from the client set
        result: The submitted collection after primary repair
    """

    to_create: tuple[PaymentMethod, ...]
    to_update: tuple[PaymentMethod, ...]
    to_delete: tuple[PaymentMethod, ...]
    result: tuple[PaymentMethod, ...]

    @property
    def has_changes(self) -> bool:
        return bool(self.to_create or self.to_update or self.to_delete)

    @property
    def operation_count(self) -> int:
        return len(self.to_create) + len(self.to_update) + len(self.to_delete)


def _index_server_set(server_set: Sequence[PaymentMethod]) -> dict[str, PaymentMethod]:
    server_by_id: dict[str, PaymentMethod] = {}
    for method in server_set:
        if method.id is None:
            raise InvalidOperation("Server payment methods must have an id")
        server_by_id[method.id] = method
    return server_by_id


def _classify_submitted(
    client_set: Sequence[PaymentMethod], server_by_id: dict[str, PaymentMethod]
) -> list[PaymentMethod]:
    """Keep known ids, drop ids the server never issued.

    Raises:
        InvalidOperation: If the same id is submitted twice, known or not
    """
    seen: set[str] = set()
    submitted: list[PaymentMethod] = []

    for method in client_set:
        if method.id is None:
            submitted.append(method)
            continue

        if method.id in seen:
            raise InvalidOperation(f"Payment method {method.id} was submitted twice")
        seen.add(method.id)

        if method.id in server_by_id:
            submitted.append(method)
        else:
            submitted.append(method.model_copy(update={"id": None}))

    return submitted


def _check_primary_deletion(
    server_set: Sequence[PaymentMethod],
    deleted: Sequence[PaymentMethod],
    submitted: Sequence[PaymentMethod],
) -> None:
    """Reject deleting every server primary unless a replacement is designated.

    Raises:
        InvalidOperation: If the primary would be deleted without replacement
    """
    server_primaries = [m for m in server_set if m.is_primary]
    deleted_primaries = [m for m in deleted if m.is_primary]

    if not deleted_primaries or len(deleted_primaries) < len(server_primaries):
        return

    if not any(m.is_primary for m in submitted):
        raise InvalidOperation(
            "The primary payment method cannot be deleted without designating a new one"
        )


def _is_newly_designated(method: PaymentMethod, server_by_id: dict[str, PaymentMethod]) -> bool:
    if method.id is None:
        return True
    return not server_by_id[method.id].is_primary


def _repair_primary(
    submitted: Sequence[PaymentMethod], server_by_id: dict[str, PaymentMethod]
) -> list[PaymentMethod]:
    """Leave exactly one primary in a non-empty collection.

    With several primaries, the last entry newly marked primary in this edit
    wins, falling back to the first primary in submission order. With none,
    the first entry in submission order is promoted.
    """
    if not submitted:
        return []

    primaries = [index for index, method in enumerate(submitted) if method.is_primary]

    if not primaries:
        keep = 0
    elif len(primaries) == 1:
        keep = primaries[0]
    else:
        newly = [i for i in primaries if _is_newly_designated(submitted[i], server_by_id)]
        keep = newly[-1] if newly else primaries[0]

    repaired: list[PaymentMethod] = []
    for index, method in enumerate(submitted):
        should_be_primary = index == keep
        if method.is_primary != should_be_primary:
            method = method.model_copy(update={"is_primary": should_be_primary})
        repaired.append(method)

    return repaired


def reconcile_payment_methods(
    server_set: Sequence[PaymentMethod],
    client_set: Sequence[PaymentMethod],
) -> ReconciliationPlan:
    """Compute the operations that turn the server set into the client set.

    Args:
        server_set: Collection as last read from the gateway; every entry has an id
        client_set: Collection submitted by the user; new entries have no id

    Returns:
        ReconciliationPlan with disjoint create, update and delete lists

    Raises:
        InvalidOperation: If an id is submitted twice, a server entry lacks
            an id, or the primary method would be deleted without a replacement
    """
    server_by_id = _index_server_set(server_set)
    submitted = _classify_submitted(client_set, server_by_id)

    kept_ids = {m.id for m in submitted if m.id is not None}
    to_delete = [m for m in server_set if m.id not in kept_ids]

    _check_primary_deletion(server_set, to_delete, submitted)

    result = _repair_primary(submitted, server_by_id)

    to_create: list[PaymentMethod] = []
    to_update: list[PaymentMethod] = []
    for method in result:
        if method.id is None:
            to_create.append(method)
        elif method.canonical_projection() != server_by_id[method.id].canonical_projection():
            to_update.append(method)

    logger.debug(
        f"Reconciled payment methods: {len(to_create)} to create, "
        f"{len(to_update)} to update, {len(to_delete)} to delete"
    )

    return ReconciliationPlan(
        to_create=tuple(to_create),
        to_update=tuple(to_update),
        to_delete=tuple(to_delete),
        result=tuple(result),
    )
