"""Tests for CSV export parsing."""

import pytest

from credvault.parsers.csv_rows import (
    _find_column_index,
    guess_two_fa_column,
    is_junk_value,
    parse_csv,
    parse_csv_api_keys,
    parse_headerless_row,
)

KEY = "AIzaSy" + "x" * 33
KEY2 = "AIzaSy" + "y" * 33


class TestColumnMapping:
    def test_exact_before_substring(self):
        headers = ["backup_email", "email", "password"]
        assert _find_column_index(headers, "email") == 1

    def test_substring_candidates(self):
        headers = ["Account Email", "pass", "totp_secret"]
        assert _find_column_index(headers, "email") == 0
        assert _find_column_index(headers, "totp", "2fa") == 2
        assert _find_column_index(headers, "password") is None

    def test_header_row(self):
        records = parse_csv("email,password,totp,backup_email\nu@gmail.com,pw,123456,b@out.com")
        assert len(records) == 1
        r = records[0]
        assert (r["email"], r["email_password"], r["two_fa_code"], r["auxiliary_email"]) == (
            "u@gmail.com", "pw", "123456", "b@out.com",
        )

    def test_missing_columns_are_empty(self):
        records = parse_csv("email,password,totp\nu@gmail.com,pw,123456\nv@gmail.com")
        assert records[0]["auxiliary_email"] == ""
        assert records[0]["auxiliary_email_password"] == ""
        assert records[1]["email_password"] == ""
        assert records[1]["two_fa_code"] == ""

    def test_backup_password_and_api_key_columns(self):
        text = (
            "email,password,backup_email,backup_password,api_key_1,api_key_2\n"
            f"u@gmail.com,pw,b@out.com,bpw,{KEY},not-a-key"
        )
        r = parse_csv(text)[0]
        assert r["auxiliary_email_password"] == "bpw"
        assert r["account_key"] == KEY

    def test_rows_without_email_are_skipped(self):
        records = parse_csv("email,password,totp\nu@gmail.com,pw2,654321\n,pw,123456")
        assert [r["email"] for r in records] == ["u@gmail.com"]


class TestTwoFaHeuristic:
    HEADERS = ["email", "password", "profile_id", "status", "note"]

    def test_first_plausible_code(self):
        fields = ["u@gmail.com", "pw", "abc123", "active1", "Qk7x9z"]
        assert guess_two_fa_column(self.HEADERS, fields, mapped={0, 1}) == "Qk7x9z"

    def test_skips_opaque_ids_and_hyphens(self):
        fields = ["u@gmail.com", "pw", "x", "y", "01abcdef"]
        assert guess_two_fa_column(self.HEADERS, fields, mapped={0, 1}) == ""
        fields = ["u@gmail.com", "pw", "x", "y", "ab-cd12"]
        assert guess_two_fa_column(self.HEADERS, fields, mapped={0, 1}) == ""

    def test_skips_mapped_columns(self):
        fields = ["u@gmail.com", "secret1", "", "", ""]
        assert guess_two_fa_column(self.HEADERS, fields, mapped={0, 1}) == ""

    def test_used_when_no_totp_column(self):
        text = "email,password,profile_id,code\nu@gmail.com,pw,12345678,Zx81Qp"
        assert parse_csv(text)[0]["two_fa_code"] == "Zx81Qp"


class TestJunkValues:
    @pytest.mark.parametrize("value", ["", "  ", "k12a0dn7", "ab12cd34", "12", "ar", "...", ",,"])
    def test_junk(self, value):
        assert is_junk_value(value)

    @pytest.mark.parametrize("value", ["Secret99", "Hunter22", "ABCD1234"])
    def test_real_values(self, value):
        assert not is_junk_value(value)


class TestHeaderlessRows:
    def test_positional_fields_and_keys(self):
        records = parse_headerless_row(f"u@gmail.com,pw,123456,b@out.com,{KEY},junk,{KEY2}")
        assert len(records) == 1
        r = records[0]
        assert r["two_fa_code"] == "123456"
        assert r["auxiliary_email"] == "b@out.com"
        assert r["account_key"] == f"{KEY},{KEY2}"

    def test_two_field_row(self):
        records = parse_csv("a@x.com,pw1")
        assert [(r["email"], r["email_password"]) for r in records] == [("a@x.com", "pw1")]

    def test_packed_extra_account(self):
        records = parse_headerless_row("u@gmail.com,pw,123456,,extra@gmail.com,Secret99,ar")
        assert len(records) == 2
        extra = records[1]
        assert extra["email"] == "extra@gmail.com"
        assert extra["email_password"] == "Secret99"
        assert extra["two_fa_code"] == ""

    def test_standard_row_is_not_rescanned(self):
        records = parse_headerless_row("u@gmail.com,pw,123456,b@out.com,c@out.com,pw3")
        assert len(records) == 1

    def test_multiple_rows(self):
        records = parse_csv("a@x.com,pw1,111111\nb@x.com,pw2,222222")
        assert [r["email"] for r in records] == ["a@x.com", "b@x.com"]


class TestCsvApiKeys:
    def test_groups(self):
        text = (
            f"u@gmail.com,pw,123456,b@out.com\n{KEY} {KEY2}\n"
            f"v@gmail.com,,654321,c@out.com,fallbackpw\n{KEY}"
        )
        records = parse_csv_api_keys(text)
        assert len(records) == 2
        assert records[0]["account_key"] == f"{KEY},{KEY2}"
        assert records[0]["two_fa_code"] == "123456"
        assert records[1]["email_password"] == "fallbackpw"
        assert records[1]["account_key"] == KEY

    def test_short_rows_skipped(self):
        assert parse_csv_api_keys(f"u@gmail.com,pw\n{KEY}") == []
