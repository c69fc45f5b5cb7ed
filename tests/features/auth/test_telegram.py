"""Tests for Telegram login payload verification.
Covers: check string canonicalization, signature verification, auth_date window, Mini App init data.
"""

import json
from datetime import UTC, datetime
from urllib.parse import urlencode

import pytest

from tea_api.features.auth.schemas import TelegramLoginRequest
from tea_api.features.auth.telegram import (
    TelegramAuthExpiredError,
    TelegramConfigurationError,
    TelegramInitDataError,
    TelegramSignatureError,
    build_check_string,
    check_auth_date,
    compute_signature,
    parse_mini_app_init_data,
    verify_login_payload,
)
from tests.conftest import telegram_signature

BOT_TOKEN = "123456:TEST-bot-token"


def make_payload(**overrides) -> TelegramLoginRequest:
    fields = {"id": 42, "first_name": "Ann", "auth_date": 1700000000}
    fields.update(overrides)
    fields.setdefault("hash", telegram_signature(fields, BOT_TOKEN))
    return TelegramLoginRequest(**fields)


class TestBuildCheckString:
    def test_fields_sorted_and_newline_joined(self):
        payload = make_payload()
        assert build_check_string(payload) == "auth_date=1700000000\nfirst_name=Ann\nid=42"

    def test_optional_fields_included_when_present(self):
        payload = make_payload(last_name="Lee", username="ann", photo_url="https://t.me/i/ann.jpg")
        assert build_check_string(payload) == (
            "auth_date=1700000000\n"
            "first_name=Ann\n"
            "id=42\n"
            "last_name=Lee\n"
            "photo_url=https://t.me/i/ann.jpg\n"
            "username=ann"
        )

    def test_empty_optional_field_is_omitted_not_rendered_empty(self):
        absent = make_payload()
        empty = make_payload(last_name="")
        present = make_payload(last_name="x")

        assert build_check_string(empty) == build_check_string(absent)
        assert "last_name=" not in build_check_string(empty)
        assert build_check_string(present) != build_check_string(absent)

    def test_hash_is_never_part_of_check_string(self):
        payload = make_payload(hash="deadbeef")
        assert "hash" not in build_check_string(payload)


class TestVerifyLoginPayload:
    def test_valid_signature_passes(self):
        verify_login_payload(make_payload(), BOT_TOKEN)

    def test_valid_signature_with_all_fields_passes(self):
        payload = make_payload(last_name="Lee", username="ann", photo_url="https://t.me/i/ann.jpg")
        verify_login_payload(payload, BOT_TOKEN)

    def test_signature_matches_reference_derivation(self):
        payload = make_payload()
        assert compute_signature(build_check_string(payload), BOT_TOKEN) == payload.hash

    @pytest.mark.parametrize(
        "field,value",
        [
            ("id", 43),
            ("first_name", "Anna"),
            ("first_name", "Bnn"),
            ("auth_date", 1700000001),
            ("username", "ann"),
        ],
    )
    def test_tampered_field_fails(self, field, value):
        original = make_payload()
        tampered = original.model_copy(update={field: value})

        with pytest.raises(TelegramSignatureError):
            verify_login_payload(tampered, BOT_TOKEN)

    def test_tampered_signature_fails(self):
        payload = make_payload()
        flipped = ("0" if payload.hash[0] != "0" else "1") + payload.hash[1:]

        with pytest.raises(TelegramSignatureError):
            verify_login_payload(payload.model_copy(update={"hash": flipped}), BOT_TOKEN)

    def test_signature_from_other_bot_fails(self):
        payload = make_payload(hash=telegram_signature({"id": 42, "first_name": "Ann", "auth_date": 1700000000}, "x"))

        with pytest.raises(TelegramSignatureError):
            verify_login_payload(payload, BOT_TOKEN)

    def test_non_hex_signature_fails_without_crashing(self):
        with pytest.raises(TelegramSignatureError):
            verify_login_payload(make_payload(hash="не-хэш"), BOT_TOKEN)

    def test_empty_bot_token_is_configuration_error(self):
        with pytest.raises(TelegramConfigurationError):
            verify_login_payload(make_payload(), "")


class TestCheckAuthDate:
    now = datetime(2024, 1, 1, tzinfo=UTC)

    def test_recent_payload_passes(self):
        payload = make_payload(auth_date=int(self.now.timestamp()) - 60)
        check_auth_date(payload, 86400, now=self.now)

    def test_stale_payload_fails(self):
        payload = make_payload(auth_date=int(self.now.timestamp()) - 86401)
        with pytest.raises(TelegramAuthExpiredError):
            check_auth_date(payload, 86400, now=self.now)

    def test_future_payload_fails(self):
        payload = make_payload(auth_date=int(self.now.timestamp()) + 3600)
        with pytest.raises(TelegramAuthExpiredError):
            check_auth_date(payload, 86400, now=self.now)

    def test_zero_disables_check(self):
        check_auth_date(make_payload(auth_date=0), 0, now=self.now)


class TestParseMiniAppInitData:
    def build_init_data(self, user: dict, auth_date: int = 1700000000, **extra) -> str:
        fields = {"id": user["id"], "auth_date": auth_date}
        for key in ("first_name", "last_name", "username", "photo_url"):
            if user.get(key):
                fields[key] = user[key]
        params = {"query_id": "AAHdF6IQAAAAAN0XohDhrOrc", "user": json.dumps(user), "auth_date": str(auth_date)}
        params["hash"] = extra.get("hash", telegram_signature(fields, BOT_TOKEN))
        return urlencode(params)

    def test_unpacks_user_fields(self):
        init_data = self.build_init_data({"id": 42, "first_name": "Ann", "username": "ann", "language_code": "en"})
        payload = parse_mini_app_init_data(init_data)

        assert payload.id == 42
        assert payload.first_name == "Ann"
        assert payload.username == "ann"
        assert payload.last_name == ""
        assert payload.auth_date == 1700000000

    def test_unpacked_payload_verifies(self):
        init_data = self.build_init_data({"id": 42, "first_name": "Ann", "last_name": "Lee"})
        verify_login_payload(parse_mini_app_init_data(init_data), BOT_TOKEN)

    def test_unpacked_payload_with_wrong_hash_fails(self):
        init_data = self.build_init_data({"id": 42, "first_name": "Ann"}, hash="ab" * 32)
        with pytest.raises(TelegramSignatureError):
            verify_login_payload(parse_mini_app_init_data(init_data), BOT_TOKEN)

    @pytest.mark.parametrize(
        "init_data",
        [
            "not a query string",
            "auth_date=1700000000&hash=abc",
            "user=%7Bbroken&auth_date=1700000000&hash=abc",
            "user=%5B1%2C2%5D&auth_date=1700000000&hash=abc",
            "user=%7B%22first_name%22%3A%22Ann%22%7D&auth_date=1700000000&hash=abc",
            "user=%7B%22id%22%3A42%7D&auth_date=1700000000",
        ],
    )
    def test_malformed_init_data_raises(self, init_data):
        with pytest.raises(TelegramInitDataError):
            parse_mini_app_init_data(init_data)
