"""Tests for the free-form fallback parser."""

from credvault.parsers.free_form import (
    extract_account_type,
    extract_date,
    extract_password,
    extract_two_fa,
    parse_free_form,
    parse_triple_dash,
    split_into_blocks,
)

KEY = "AIzaSy" + "x" * 33


class TestBlocks:
    def test_separator_line(self):
        blocks = split_into_blocks("账号: a@gmail.com 密码: Pw123456\n---\n账号: b@gmail.com 密码: Qw654321")
        assert blocks == ["账号: a@gmail.com 密码: Pw123456", "账号: b@gmail.com 密码: Qw654321"]

    def test_blank_lines(self):
        assert len(split_into_blocks("a@gmail.com Secret1\n\nb@gmail.com Secret2")) == 2

    def test_inline_triple_dash_is_one_block(self):
        assert len(split_into_blocks("a@gmail.com---Pw123---aux@teml.net")) == 1

    def test_short_or_emailless_blocks_dropped(self):
        assert split_into_blocks("hello there\n\nx@y.co") == []


class TestTripleDash:
    def test_positional_fields(self):
        r = parse_triple_dash("a@gmail.com---Pw123$$---aux@teml.net---AuxPw!---abcd efgh")
        assert r["email_password"] == "Pw123"
        assert r["auxiliary_email"] == "aux@teml.net"
        assert r["auxiliary_email_password"] == "AuxPw"
        assert r["two_fa_code"] == "abcd efgh"

    def test_no_email(self):
        assert parse_triple_dash("nothing---here") is None


class TestPassword:
    def test_chinese_label(self):
        assert extract_password("账号: a@gmail.com 密码: Pw123456", "a@gmail.com") == "Pw123456"

    def test_value_after_email(self):
        assert extract_password("a@gmail.com Secret1", "a@gmail.com") == "Secret1"

    def test_location_is_skipped(self):
        assert extract_password("email a@gmail.com turkey Hunter22", "a@gmail.com") == "Hunter22"

    def test_api_key_is_not_password(self):
        assert extract_password(f"a@gmail.com {KEY} Hunter22", "a@gmail.com") == "Hunter22"

    def test_password_gmail_label(self):
        assert extract_password("a@gmail.com\nPassword Gmail: Pw99", "a@gmail.com") == "Pw99"


class TestTwoFa:
    def test_labelled(self):
        assert extract_two_fa("a@gmail.com pw\n2fa: abcd efgh ijkl") == "abcd efgh ijkl"

    def test_indicator_word_in_prose_is_not_a_label(self):
        assert extract_two_fa("a@gmail.com pw\nauthentication failed twice today") == ""
        assert extract_two_fa("a@gmail.com pw\n验证码：Zx81Qp") == "Zx81Qp"

    def test_recovery_groups(self):
        assert extract_two_fa("a@gmail.com pw\nabcd efgh ijkl mnop") == "abcd efgh ijkl mnop"

    def test_totp_secret_near_email(self):
        secret = "A" * 32
        assert extract_two_fa(f"a@gmail.com pw\n{secret}") == secret

    def test_totp_secret_too_far_from_email(self):
        assert extract_two_fa("a@gmail.com pw\nx\ny\n" + "A" * 32) == ""


class TestMetadata:
    def test_date(self):
        assert extract_date("stored 2025/8/24") == "2025-08-24"
        assert extract_date("stored 2025-13-40") == ""

    def test_account_type_label(self):
        assert extract_account_type("账号类型: Outlook企业\na@x.com") == "Outlook企业"
        assert extract_account_type("a@x.com pw") == ""


class TestParseFreeForm:
    def test_labelled_records(self):
        records = parse_free_form("账号: a@gmail.com 密码: Pw123456\n---\n账号: b@gmail.com 密码: Qw654321")
        assert [(r["email"], r["email_password"]) for r in records] == [
            ("a@gmail.com", "Pw123456"),
            ("b@gmail.com", "Qw654321"),
        ]

    def test_key_and_date_collected(self):
        records = parse_free_form(f"账号: a@gmail.com 密码: Pw123456 key {KEY} 2025-01-05")
        r = records[0]
        assert r["email_password"] == "Pw123456"
        assert r["account_key"] == KEY
        assert r["storage_date"] == "2025-01-05"

    def test_second_email_is_auxiliary(self):
        records = parse_free_form("邮箱 a@gmail.com 密码: Pw123456 辅助 b@teml.net 密码: AuxPw99")
        r = records[0]
        assert r["auxiliary_email"] == "b@teml.net"
        assert r["auxiliary_email_password"] == "AuxPw99"
