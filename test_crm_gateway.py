"""
Tests for the CRM RPC gateway and duplicate lookups.
"""

import pytest
import requests

from api.errors import ConfigMissing, TransportFailure
from api.services.crm_gateway import (
    CrmGateway,
    LookupStatus,
    mask_webhook_url,
    normalize_duplicate_result,
)
from config import BridgeSettings
from conftest import CRM_URL, FakeResponse


class TestCall:

    def test_posts_json_to_method_url(self, settings, crm_session):
        crm_session.reply("crm.lead.add", {"result": 77, "time": {}})
        gateway = CrmGateway(settings, session=crm_session)

        result = gateway.call("crm.lead.add", {"fields": {"TITLE": "x"}})

        assert result.ok is True
        assert result.result == 77
        call = crm_session.calls[0]
        assert call["url"] == f"{CRM_URL}/crm.lead.add"
        assert call["json"] == {"fields": {"TITLE": "x"}}
        assert call["timeout"] == 15

    def test_trailing_slash_in_base_url(self, crm_session):
        crm_session.reply("crm.lead.add", {"result": 1})
        gateway = CrmGateway(BridgeSettings(crm_webhook_url=CRM_URL + "/"), session=crm_session)

        gateway.call("crm.lead.add", {})

        assert crm_session.calls[0]["url"] == f"{CRM_URL}/crm.lead.add"

    def test_missing_url_fails_before_network(self, crm_session):
        gateway = CrmGateway(BridgeSettings(crm_webhook_url=""), session=crm_session)

        with pytest.raises(ConfigMissing):
            gateway.call("crm.lead.add", {})
        with pytest.raises(ConfigMissing):
            gateway.find_duplicates(["119"], "a@b.com")
        assert crm_session.calls == []

    def test_logical_error_is_returned_not_raised(self, settings, crm_session):
        crm_session.reply("crm.lead.add", FakeResponse(
            {"error": "ERROR_CORE", "error_description": "Campo obrigatório"}, status_code=400))
        gateway = CrmGateway(settings, session=crm_session)

        result = gateway.call("crm.lead.add", {})

        assert result.ok is False
        assert result.error == "ERROR_CORE"
        assert result.error_details()["error_description"] == "Campo obrigatório"

    @pytest.mark.parametrize("failure", [
        requests.Timeout("read timed out"),
        requests.ConnectionError("Name or service not known"),
    ])
    def test_network_errors_raise_transport_failure(self, settings, crm_session, failure):
        crm_session.reply("crm.lead.add", failure)
        gateway = CrmGateway(settings, session=crm_session)

        with pytest.raises(TransportFailure):
            gateway.call("crm.lead.add", {})

    def test_http_error_without_envelope_is_transport_failure(self, settings, crm_session):
        crm_session.reply("crm.lead.add", FakeResponse(None, status_code=502, text="<html>Bad Gateway</html>"))
        gateway = CrmGateway(settings, session=crm_session)

        with pytest.raises(TransportFailure):
            gateway.call("crm.lead.add", {})

    @pytest.mark.parametrize("status_code, error", [
        (503, "QUERY_LIMIT_EXCEEDED"),
        (500, "INTERNAL_SERVER_ERROR"),
    ])
    def test_server_error_with_envelope_is_transport_failure(self, settings, crm_session, status_code, error):
        crm_session.reply("crm.lead.add", FakeResponse(
            {"error": error, "error_description": "try again later"}, status_code=status_code))
        gateway = CrmGateway(settings, session=crm_session)

        with pytest.raises(TransportFailure) as exc_info:
            gateway.call("crm.lead.add", {})
        assert error in exc_info.value.message

    def test_success_with_non_json_body_is_transport_failure(self, settings, crm_session):
        crm_session.reply("crm.lead.add", FakeResponse(None, status_code=200, text="<html>"))
        gateway = CrmGateway(settings, session=crm_session)

        with pytest.raises(TransportFailure):
            gateway.call("crm.lead.add", {})

    @pytest.mark.parametrize("error_value", ["", None, 0])
    def test_success_with_empty_error_key_is_ok(self, settings, crm_session, error_value):
        crm_session.reply("crm.lead.add", {"result": 12, "error": error_value})
        gateway = CrmGateway(settings, session=crm_session)

        result = gateway.call("crm.lead.add", {})

        assert result.ok is True
        assert result.result == 12

    def test_server_error_on_lookup_marks_channel_failed(self, settings, crm_session):
        crm_session.reply(
            "crm.duplicate.findbycomm",
            FakeResponse({"error": "QUERY_LIMIT_EXCEEDED"}, status_code=503),
            {"result": {"LEAD": [8]}},
        )
        gateway = CrmGateway(settings, session=crm_session)

        check = gateway.find_duplicates(["119"], "ana@example.com")

        assert check.phone.status == LookupStatus.LOOKUP_FAILED
        assert check.lead_id == 8


class TestNormalizeDuplicateResult:

    @pytest.mark.parametrize("raw, expected", [
        ({"LEAD": [10, 20]}, [10, 20]),
        ({"LEAD": ["10", "x", 20]}, [10, 20]),
        ([5], [5]),
        ([], []),
        ({}, []),
        (None, []),
        ({"result": {"LEAD": [3]}}, [3]),
        ({"result": []}, []),
    ])
    def test_shapes(self, raw, expected):
        assert normalize_duplicate_result(raw) == expected


class TestFindDuplicates:

    def test_both_channels_queried(self, settings, crm_session):
        crm_session.reply("crm.duplicate.findbycomm", {"result": {"LEAD": [11]}}, {"result": []})
        gateway = CrmGateway(settings, session=crm_session)

        check = gateway.find_duplicates(["119", "118"], "ana@example.com")

        phone_call, email_call = crm_session.calls
        assert phone_call["json"] == {"entity_type": "LEAD", "type": "PHONE", "values": ["119", "118"]}
        assert email_call["json"] == {"entity_type": "LEAD", "type": "EMAIL", "values": ["ana@example.com"]}
        assert check.phone.status == LookupStatus.FOUND
        assert check.phone.lead_ids == [11]
        assert check.email.status == LookupStatus.FOUND
        assert check.email.lead_ids == []
        assert check.is_duplicate is True
        assert check.lead_id == 11

    def test_channels_without_data_are_not_checked(self, settings, crm_session):
        gateway = CrmGateway(settings, session=crm_session)

        check = gateway.find_duplicates([], None)

        assert crm_session.calls == []
        assert check.phone.status == LookupStatus.NOT_CHECKED
        assert check.email.status == LookupStatus.NOT_CHECKED
        assert check.is_duplicate is False
        assert check.lead_id is None

    def test_phone_failure_does_not_block_email(self, settings, crm_session, connection_error):
        crm_session.reply("crm.duplicate.findbycomm", connection_error, {"result": {"LEAD": [42]}})
        gateway = CrmGateway(settings, session=crm_session)

        check = gateway.find_duplicates(["119"], "ana@example.com")

        assert len(crm_session.calls) == 2
        assert check.phone.status == LookupStatus.LOOKUP_FAILED
        assert "Name or service not known" in check.phone.error
        assert check.is_duplicate is True
        assert check.lead_id == 42
        assert check.matched_channel == "email"

    def test_logical_error_nulls_out_channel(self, settings, crm_session):
        crm_session.reply(
            "crm.duplicate.findbycomm",
            {"result": {"LEAD": [9]}},
            {"error": "INVALID_ARG_VALUE", "error_description": "bad email"},
        )
        gateway = CrmGateway(settings, session=crm_session)

        check = gateway.find_duplicates(["119"], "not-an-email")

        assert check.email.status == LookupStatus.LOOKUP_FAILED
        assert check.email.error == "INVALID_ARG_VALUE"
        assert check.lead_id == 9

    def test_phone_match_wins_over_email_match(self, settings, crm_session):
        crm_session.reply("crm.duplicate.findbycomm", {"result": {"LEAD": [100, 101]}}, {"result": {"LEAD": [200]}})
        gateway = CrmGateway(settings, session=crm_session)

        check = gateway.find_duplicates(["119"], "ana@example.com")

        assert check.lead_id == 100
        assert check.matched_channel == "phone"


def test_mask_webhook_url_hides_token():
    assert mask_webhook_url(f"{CRM_URL}/crm.lead.add") == "https://crm.example.com/rest/1/***/crm.lead.add"


def test_default_session_is_requests_session(settings):
    assert isinstance(CrmGateway(settings).session, requests.Session)
