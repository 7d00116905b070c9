"""Unit tests for PaymentMethodService."""

from unittest.mock import MagicMock, patch

import pytest

from food_ordering_core.errors import (
    AuthorizationFailure,
    InvalidOperation,
    ResourceNotFound,
)
from food_ordering_core.models.gateway_models import GatewayOutcome, OutcomeKind
from food_ordering_core.models.identity_models import Principal
from food_ordering_core.models.payment_models import PaymentMethod, PaymentMethodType
from food_ordering_core.services.gateway_client import ResourceGatewayClient
from food_ordering_core.services.payment_method_service import (
    BatchOperation,
    BatchResult,
    OperationResult,
    PaymentMethodService,
)


def listing(*methods: PaymentMethod) -> GatewayOutcome:
    return GatewayOutcome(
        kind=OutcomeKind.SUCCESS,
        status_code=200,
        data=[m.model_dump(mode="json") for m in methods],
    )


def outcome(kind: OutcomeKind = OutcomeKind.SUCCESS, status_code: int = 200) -> GatewayOutcome:
    message = None if kind == OutcomeKind.SUCCESS else "gateway error"
    return GatewayOutcome(kind=kind, status_code=status_code, message=message)


@pytest.mark.unit
class TestBatchResult:
    """Test suite for BatchResult and OperationResult summaries."""

    def test_counts(self, card: PaymentMethod, paypal: PaymentMethod) -> None:
        """Test that succeeded, failed and not implemented are counted separately."""
        batch = BatchResult(
            results=[
                OperationResult(BatchOperation.UPDATE, card, OutcomeKind.SUCCESS),
                OperationResult(BatchOperation.UPDATE, paypal, OutcomeKind.VALIDATION_FAILURE),
                OperationResult(BatchOperation.DELETE, paypal, OutcomeKind.NOT_IMPLEMENTED),
            ]
        )

        assert batch.succeeded == 1
        assert batch.failed == 1
        assert batch.not_implemented == 1
        assert not batch.success

    def test_empty_batch_is_success(self) -> None:
        """Test that a batch without operations counts as successful."""
        assert BatchResult().success

    @pytest.mark.parametrize(
        ("operation", "kind", "retained"),
        [
            (BatchOperation.CREATE, OutcomeKind.SUCCESS, False),
            (BatchOperation.CREATE, OutcomeKind.NOT_IMPLEMENTED, True),
            (BatchOperation.UPDATE, OutcomeKind.TRANSPORT_FAILURE, True),
            (BatchOperation.DELETE, OutcomeKind.NOT_IMPLEMENTED, False),
            (BatchOperation.DELETE, OutcomeKind.TRANSPORT_FAILURE, True),
        ],
    )
    def test_retain_local_edit(
        self,
        card: PaymentMethod,
        operation: BatchOperation,
        kind: OutcomeKind,
        retained: bool,
    ) -> None:
        """Test which failed operations keep the local edit pending."""
        assert OperationResult(operation, card, kind).retain_local_edit is retained


@pytest.mark.unit
class TestPaymentMethodService:
    """Test suite for PaymentMethodService."""

    @pytest.fixture
    def mock_gateway(self) -> MagicMock:
        """Create a mock gateway client."""
        return MagicMock(spec=ResourceGatewayClient)

    @pytest.fixture
    def service(self, mock_gateway: MagicMock) -> PaymentMethodService:
        """Create a PaymentMethodService with a mocked gateway."""
        return PaymentMethodService(gateway=mock_gateway)

    @pytest.mark.asyncio
    async def test_list_own_hides_foreign_methods(
        self,
        service: PaymentMethodService,
        mock_gateway: MagicMock,
        north_member: Principal,
        card: PaymentMethod,
    ) -> None:
        """Test that methods owned by other users are never returned."""
        foreign = card.model_copy(update={"id": "pm_other", "owner_id": "someone_else"})
        mock_gateway.list_own_payment_methods.return_value = listing(card, foreign)

        methods = await service.list_own(north_member, "token")

        assert [m.id for m in methods] == ["pm_card"]

    @pytest.mark.asyncio
    async def test_list_global_requires_admin(
        self, service: PaymentMethodService, mock_gateway: MagicMock, north_manager: Principal
    ) -> None:
        """Test that non-admins cannot read the platform-wide collection."""
        with pytest.raises(AuthorizationFailure):
            await service.list_global(north_manager, "token")

        mock_gateway.list_payment_methods.assert_not_called()

    @pytest.mark.asyncio
    async def test_reconcile_without_changes(
        self,
        service: PaymentMethodService,
        mock_gateway: MagicMock,
        north_member: Principal,
        card: PaymentMethod,
        paypal: PaymentMethod,
    ) -> None:
        """Test that an unchanged collection dispatches nothing."""
        mock_gateway.list_own_payment_methods.return_value = listing(card, paypal)

        batch = await service.reconcile_own(north_member, "token", [card, paypal])

        assert batch.results == []
        assert batch.success
        assert [m.id for m in batch.payment_methods] == ["pm_card", "pm_paypal"]
        mock_gateway.update_own_payment_method.assert_not_called()
        assert mock_gateway.list_own_payment_methods.call_count == 1

    @pytest.mark.asyncio
    async def test_reconcile_rejects_foreign_entries(
        self,
        service: PaymentMethodService,
        mock_gateway: MagicMock,
        north_member: Principal,
        card: PaymentMethod,
    ) -> None:
        """Test that submitting another user's method is denied."""
        mock_gateway.list_own_payment_methods.return_value = listing(card)
        foreign = card.model_copy(update={"id": "pm_other", "owner_id": "someone_else"})

        with pytest.raises(AuthorizationFailure):
            await service.reconcile_own(north_member, "token", [card, foreign])

    @pytest.mark.asyncio
    async def test_update_moves_primary(
        self,
        service: PaymentMethodService,
        mock_gateway: MagicMock,
        north_member: Principal,
        card: PaymentMethod,
        paypal: PaymentMethod,
    ) -> None:
        """Test that making one method primary demotes the previous primary."""
        promoted = paypal.model_copy(update={"is_primary": True})
        demoted = card.model_copy(update={"is_primary": False})
        mock_gateway.list_own_payment_methods.side_effect = [
            listing(card, paypal),
            listing(demoted, promoted),
        ]
        mock_gateway.update_own_payment_method.return_value = outcome()

        with patch(
            "food_ordering_core.services.payment_method_service.record_payment_method_operation"
        ) as mock_record:
            batch = await service.update_own(north_member, "token", "pm_paypal", promoted)

        assert batch.success
        assert batch.succeeded == 2
        updated = {
            call.args[1]: call.args[2]["is_primary"]
            for call in mock_gateway.update_own_payment_method.call_args_list
        }
        assert updated == {"pm_card": False, "pm_paypal": True}
        assert [m.id for m in batch.payment_methods if m.is_primary] == ["pm_paypal"]
        assert mock_record.call_count == 2

    @pytest.mark.asyncio
    async def test_update_unknown_method(
        self,
        service: PaymentMethodService,
        mock_gateway: MagicMock,
        north_member: Principal,
        card: PaymentMethod,
    ) -> None:
        """Test that updating a method the user does not have is not found."""
        mock_gateway.list_own_payment_methods.return_value = listing(card)

        with pytest.raises(ResourceNotFound):
            await service.update_own(north_member, "token", "pm_missing", card)

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_edit_pending(
        self,
        service: PaymentMethodService,
        mock_gateway: MagicMock,
        north_member: Principal,
        card: PaymentMethod,
        paypal: PaymentMethod,
    ) -> None:
        """Test that a rejected create is reported and kept pending."""
        mock_gateway.list_own_payment_methods.return_value = listing(card, paypal)
        mock_gateway.create_own_payment_method.return_value = outcome(
            OutcomeKind.VALIDATION_FAILURE, 422
        )
        wallet = PaymentMethod(type=PaymentMethodType.GOOGLE_PAY, email="mia@example.com")

        batch = await service.add_own(north_member, "token", wallet)

        assert not batch.success
        assert batch.failed == 1
        assert batch.results[0].message == "gateway error"
        assert [m.type for m in batch.pending_edits] == [PaymentMethodType.GOOGLE_PAY]
        assert batch.pending_edits[0].id is None

    @pytest.mark.asyncio
    async def test_raising_operation_does_not_abort_batch(
        self,
        service: PaymentMethodService,
        mock_gateway: MagicMock,
        north_member: Principal,
        card: PaymentMethod,
        paypal: PaymentMethod,
    ) -> None:
        """Test that an operation raising unexpectedly is recorded as a transport failure."""
        mock_gateway.list_own_payment_methods.return_value = listing(card, paypal)
        mock_gateway.update_own_payment_method.side_effect = RuntimeError("connection pool closed")
        mock_gateway.create_own_payment_method.return_value = outcome(status_code=201)
        changed = paypal.model_copy(update={"email": "mia.new@example.com"})
        wallet = PaymentMethod(type=PaymentMethodType.GOOGLE_PAY, email="mia@example.com")

        batch = await service.reconcile_own(north_member, "token", [card, changed, wallet])

        assert batch.succeeded == 1
        assert batch.failed == 1
        failed = [r for r in batch.results if r.kind == OutcomeKind.TRANSPORT_FAILURE]
        assert failed[0].operation == BatchOperation.UPDATE
        assert failed[0].message == "connection pool closed"
        assert [m.id for m in batch.pending_edits] == ["pm_paypal"]
        mock_gateway.create_own_payment_method.assert_called_once()

    @pytest.mark.asyncio
    async def test_add_ignores_submitted_identity(
        self,
        service: PaymentMethodService,
        mock_gateway: MagicMock,
        north_member: Principal,
        card: PaymentMethod,
    ) -> None:
        """Test that an added method is always created, never an update of another id."""
        mock_gateway.list_own_payment_methods.return_value = listing(card)
        mock_gateway.create_own_payment_method.return_value = outcome(status_code=201)
        copy = card.model_copy(update={"last4": "0005", "is_primary": False})

        await service.add_own(north_member, "token", copy)

        mock_gateway.update_own_payment_method.assert_not_called()
        payload = mock_gateway.create_own_payment_method.call_args.args[1]
        assert payload == {"type": "Credit Card", "is_primary": False, "last4": "0005"}

    @pytest.mark.asyncio
    async def test_delete_not_implemented_drops_entry(
        self,
        service: PaymentMethodService,
        mock_gateway: MagicMock,
        north_member: Principal,
        card: PaymentMethod,
        paypal: PaymentMethod,
    ) -> None:
        """Test that a stubbed delete is counted separately and not kept pending."""
        mock_gateway.list_own_payment_methods.return_value = listing(card, paypal)
        mock_gateway.delete_own_payment_method.return_value = outcome(
            OutcomeKind.NOT_IMPLEMENTED, 501
        )

        batch = await service.delete_own(north_member, "token", "pm_paypal")

        mock_gateway.delete_own_payment_method.assert_called_once_with("token", "pm_paypal")
        assert batch.not_implemented == 1
        assert batch.failed == 0
        assert batch.pending_edits == []

    @pytest.mark.asyncio
    async def test_delete_sole_primary_rejected(
        self,
        service: PaymentMethodService,
        mock_gateway: MagicMock,
        north_member: Principal,
        card: PaymentMethod,
        paypal: PaymentMethod,
    ) -> None:
        """Test that the only primary method cannot be deleted."""
        mock_gateway.list_own_payment_methods.return_value = listing(card, paypal)

        with pytest.raises(InvalidOperation):
            await service.delete_own(north_member, "token", "pm_card")

        mock_gateway.delete_own_payment_method.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_refresh_marks_batch_stale(
        self,
        service: PaymentMethodService,
        mock_gateway: MagicMock,
        north_member: Principal,
        card: PaymentMethod,
        paypal: PaymentMethod,
    ) -> None:
        """Test that a failed read-back leaves an empty, stale collection."""
        mock_gateway.list_own_payment_methods.side_effect = [
            listing(card, paypal),
            outcome(OutcomeKind.TRANSPORT_FAILURE, 503),
        ]
        mock_gateway.delete_own_payment_method.return_value = outcome(status_code=204)

        batch = await service.delete_own(north_member, "token", "pm_paypal")

        assert batch.success
        assert batch.stale
        assert batch.payment_methods == []

    @pytest.mark.asyncio
    async def test_update_global(
        self,
        service: PaymentMethodService,
        mock_gateway: MagicMock,
        admin: Principal,
    ) -> None:
        """Test that admins update platform-wide methods through the global endpoints."""
        global_card = PaymentMethod(
            id="gpm_card", type=PaymentMethodType.CREDIT_CARD, last4="1111", is_primary=True
        )
        mock_gateway.list_payment_methods.return_value = listing(global_card)
        mock_gateway.update_payment_method.return_value = outcome()

        batch = await service.update_global(
            admin, "token", "gpm_card", global_card.model_copy(update={"last4": "2222"})
        )

        assert batch.success
        mock_gateway.update_payment_method.assert_called_once_with(
            "token", "gpm_card", {"type": "Credit Card", "is_primary": True, "last4": "2222"}
        )
        mock_gateway.update_own_payment_method.assert_not_called()

    @pytest.mark.asyncio
    async def test_reconcile_global_requires_admin(
        self, service: PaymentMethodService, mock_gateway: MagicMock, north_member: Principal
    ) -> None:
        """Test that members cannot edit the platform-wide collection."""
        with pytest.raises(AuthorizationFailure):
            await service.reconcile_global(north_member, "token", [])

        mock_gateway.list_payment_methods.assert_not_called()
