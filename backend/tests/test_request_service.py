"""Tests for the request service facade"""

import pytest

from gestiones.domain.models import FieldSchema
from gestiones.domain.enums import RequestStatus
from gestiones.domain.errors import FormValidationError, PermissionDeniedError, RequestNotFoundError

from .conftest import make_actor, make_request


class TestSubmissionGate:

    def test_invalid_data_blocks_submission(self, request_service, stores):
        stores.schema.fields["TPL-1"] = [FieldSchema(field_key="monto", label="Monto", field_type="number",
                                                     is_required=True)]
        stores.requests.add_request(make_request(status=RequestStatus.BORRADOR))

        with pytest.raises(FormValidationError) as exc_info:
            request_service.submit("REQ-1", make_actor("creator"))

        assert exc_info.value.errors == {"monto": "Monto es requerido"}
        assert stores.requests.get_request("REQ-1").status == RequestStatus.BORRADOR
        assert stores.history.entries == []

    def test_valid_data_is_submitted(self, request_service, stores):
        stores.schema.fields["TPL-1"] = [FieldSchema(field_key="monto", label="Monto", field_type="number",
                                                     is_required=True)]
        stores.requests.add_request(make_request(status=RequestStatus.BORRADOR, data={"monto": 10}))

        result = request_service.submit("REQ-1", make_actor("creator"))
        assert result.request.status == RequestStatus.APROBADA

    def test_request_without_template_skips_validation(self, request_service, stores):
        stores.requests.add_request(make_request(status=RequestStatus.BORRADOR, template_id=None))
        result = request_service.submit("REQ-1", make_actor("creator"))
        assert result.request.status == RequestStatus.APROBADA


class TestReadViews:

    def test_draft_workflow_is_private(self, request_service, stores):
        stores.requests.add_request(make_request(status=RequestStatus.BORRADOR))

        with pytest.raises(PermissionDeniedError):
            request_service.get_workflow("REQ-1", make_actor("curioso", "compras"))
        assert request_service.get_workflow("REQ-1", make_actor("creator")).current_level is None

    def test_history_follows_transitions(self, request_service, two_level_request):
        request_service.approve("REQ-1", make_actor("cami", "compras"))
        request_service.reject("REQ-1", make_actor("fede", "finanzas"), "No")

        history = request_service.get_history("REQ-1")
        assert [h.to_status for h in history] == [RequestStatus.EN_REVISION, RequestStatus.RECHAZADA]

    def test_history_of_unknown_request(self, request_service):
        with pytest.raises(RequestNotFoundError):
            request_service.get_history("REQ-404")

    @pytest.mark.parametrize("action, from_status, to_status", [
        ("start", RequestStatus.APROBADA, RequestStatus.EN_EJECUCION),
        ("pause", RequestStatus.EN_EJECUCION, RequestStatus.EN_ESPERA),
        ("resume", RequestStatus.EN_ESPERA, RequestStatus.EN_EJECUCION),
        ("complete", RequestStatus.EN_EJECUCION, RequestStatus.COMPLETADA),
    ])
    def test_execution_actions(self, request_service, stores, action, from_status, to_status):
        stores.requests.add_request(make_request(status=from_status))
        result = request_service.execution("REQ-1", make_actor("eva", "ejecutor"), action)
        assert result.request.status == to_status


class TestCreation:

    def test_submitting_invalid_data_creates_nothing(self, request_service, stores):
        stores.schema.fields["TPL-1"] = [FieldSchema(field_key="monto", label="Monto", field_type="number",
                                                     is_required=True)]

        with pytest.raises(FormValidationError):
            request_service.create_request(make_actor("creator"), "TPL-1", "Compra", {}, submit=True)
        assert stores.requests.requests == {}

    def test_drafts_are_not_validated(self, request_service, stores):
        stores.schema.fields["TPL-1"] = [FieldSchema(field_key="monto", label="Monto", field_type="number",
                                                     is_required=True)]

        result = request_service.create_request(make_actor("creator"), "TPL-1", "Compra")
        assert result.request.status == RequestStatus.BORRADOR

        request_service.update_request(result.request.id, make_actor("creator"), data_json={"monto": 5})
        assert request_service.submit(result.request.id, make_actor("creator")).request.status == RequestStatus.APROBADA
