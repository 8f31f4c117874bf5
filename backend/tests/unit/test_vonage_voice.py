"""
Unit tests for the Vonage voice bridge
"""

import jwt
import pytest

from pharmacall.core.errors import TelephonyNotConfigured
from pharmacall.domain.models.call_request import CallStatus
from pharmacall.infrastructure.telephony.factory import TelephonyFactory
from pharmacall.infrastructure.telephony.vonage_voice import VonageVoiceBridge


class TestConfiguration:

    def test_configured_with_inline_key(self, telephony):
        assert telephony.is_configured
        assert telephony.name == "vonage"

    def test_not_configured_without_credentials(self, unconfigured_telephony):
        assert not unconfigured_telephony.is_configured
        with pytest.raises(TelephonyNotConfigured):
            unconfigured_telephony.mint_grant("user_a")

    def test_key_loaded_from_path(self, tmp_path, rsa_key_pair, make_settings):
        private_pem, _ = rsa_key_pair
        key_file = tmp_path / "private.key"
        key_file.write_text(private_pem)

        bridge = VonageVoiceBridge(make_settings(
            vonage_application_id="app-123",
            vonage_private_key_path=str(key_file),
        ))

        assert bridge.is_configured

    def test_missing_key_file(self, tmp_path, make_settings):
        bridge = VonageVoiceBridge(make_settings(
            vonage_application_id="app-123",
            vonage_private_key_path=str(tmp_path / "absent.key"),
        ))
        assert not bridge.is_configured

    def test_escaped_newlines_in_env_key(self, rsa_key_pair, make_settings):
        private_pem, public_pem = rsa_key_pair
        bridge = VonageVoiceBridge(make_settings(
            vonage_application_id="app-123",
            vonage_private_key=private_pem.replace("\n", "\\n"),
        ))
        token = bridge.mint_grant("user_a").token
        assert jwt.decode(token, public_pem, algorithms=["RS256"])["sub"] == "user_a"

    def test_pharmacist_identity_is_sanitized(self, make_settings):
        bridge = VonageVoiceBridge(make_settings(pharmacist_identity="front desk#1"))
        assert bridge.pharmacist_identity == "front_desk_1"

    def test_factory_creates_vonage_bridge(self, make_settings):
        provider = TelephonyFactory.create("vonage", make_settings(), grant_ttl_seconds=60)
        assert isinstance(provider, VonageVoiceBridge)
        with pytest.raises(ValueError):
            TelephonyFactory.create("twilio", make_settings())


class TestMintGrant:

    def test_claims(self, telephony, rsa_key_pair):
        _, public_pem = rsa_key_pair

        grant = telephony.mint_grant("user_a")
        claims = jwt.decode(grant.token, public_pem, algorithms=["RS256"])

        assert grant.identity == "user_a"
        assert claims["application_id"] == "app-123"
        assert claims["sub"] == "user_a"
        assert "/*/users/**" in claims["acl"]["paths"]
        assert "/*/legs/**" in claims["acl"]["paths"]
        assert claims["exp"] - claims["iat"] == 3600
        assert claims["jti"]

    def test_each_grant_has_unique_jti(self, telephony, rsa_key_pair):
        _, public_pem = rsa_key_pair
        first = jwt.decode(telephony.mint_grant("user_a").token, public_pem, algorithms=["RS256"])
        second = jwt.decode(telephony.mint_grant("user_a").token, public_pem, algorithms=["RS256"])
        assert first["jti"] != second["jti"]

    def test_custom_ttl(self, rsa_key_pair, make_settings):
        private_pem, public_pem = rsa_key_pair
        bridge = VonageVoiceBridge(
            make_settings(vonage_application_id="app-123", vonage_private_key=private_pem),
            grant_ttl_seconds=600,
        )
        grant = bridge.mint_grant("user_a")
        claims = jwt.decode(grant.token, public_pem, algorithms=["RS256"])

        assert claims["exp"] - claims["iat"] == 600
        assert abs(grant.expires_at.timestamp() - claims["exp"]) < 1


class TestRouteIncoming:

    def test_defaults_to_pharmacist_console(self, telephony):
        instruction = telephony.route_incoming({
            "from_user": "user_a",
            "custom_data": {"request_id": "req-1", "caller_name": "Jane Doe"},
        })

        assert instruction.target_identity == "pharmacist_console"
        assert instruction.caller_identity == "user_a"
        assert instruction.request_id == "req-1"
        assert instruction.parameters == {
            "callerName": "Jane Doe",
            "callerIdentity": "user_a",
            "requestId": "req-1",
        }
        assert instruction.event_url == (
            "https://api.example.com/api/v1/webhooks/vonage/event?request_id=req-1"
        )

    def test_custom_data_as_json_string(self, telephony):
        instruction = telephony.route_incoming({
            "from_user": "user_a",
            "custom_data": '{"request_id": "req-9", "caller_name": "Jane Doe"}',
        })

        assert instruction.request_id == "req-9"
        assert instruction.caller_name == "Jane Doe"
        assert instruction.parameters["requestId"] == "req-9"

    def test_malformed_custom_data_string_is_ignored(self, telephony):
        instruction = telephony.route_incoming({"custom_data": "{not json", "request_id": "req-2"})
        assert instruction.request_id == "req-2"

    def test_dialed_identity_is_sanitized(self, telephony):
        instruction = telephony.route_incoming({"to": "pharmacist two", "from": "user_a"})
        assert instruction.target_identity == "pharmacist_two"

    def test_metadata_is_bounded(self, telephony):
        instruction = telephony.route_incoming({
            "request_id": "r" * 300,
            "callerName": "n" * 300,
        })
        assert len(instruction.request_id) == 120
        assert len(instruction.caller_name) == 80

    def test_event_url_carries_webhook_secret(self, rsa_key_pair, make_settings):
        private_pem, _ = rsa_key_pair
        bridge = VonageVoiceBridge(make_settings(
            vonage_application_id="app-123",
            vonage_private_key=private_pem,
            webhook_secret="s3cret",
        ))
        instruction = bridge.route_incoming({"request_id": "req-1"})
        assert instruction.event_url.endswith("?request_id=req-1&secret=s3cret")

    def test_no_metadata(self, telephony):
        instruction = telephony.route_incoming({})
        assert instruction.parameters == {}
        assert instruction.caller_identity is None
        assert instruction.event_url == "https://api.example.com/api/v1/webhooks/vonage/event"


class TestMapLegStatus:

    @pytest.mark.parametrize("vonage_status,expected", [
        ("ringing", CallStatus.RINGING),
        ("answered", CallStatus.IN_PROGRESS),
        ("completed", CallStatus.COMPLETED),
        ("busy", CallStatus.MISSED),
        ("rejected", CallStatus.MISSED),
        ("timeout", CallStatus.MISSED),
        ("unanswered", CallStatus.MISSED),
        ("cancelled", CallStatus.CANCELLED),
        ("failed", CallStatus.FAILED),
        ("started", None),
        ("", None),
    ])
    def test_mapping(self, telephony, vonage_status, expected):
        assert telephony.map_leg_status(vonage_status) == expected
