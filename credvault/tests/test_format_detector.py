"""Tests for the whole-input format detectors and the dispatch order."""

import pytest

from credvault.parsers import FALLBACK_GRAMMAR, GRAMMARS, detect_grammar
from credvault.parsers.format_detector import (
    chat_template_kind,
    csv_fields,
    csv_key_groups,
    detect_chat_log,
    detect_compact,
    detect_csv,
    detect_multi_account,
    detect_shared_password,
    detect_three_line,
    has_delimited_account,
    is_bare_email_line,
    is_csv_like,
    line_pairs,
    split_lines,
    three_field_line,
    three_line_groups,
)

KEY = "AIzaSy" + "x" * 33

THREE_LINE = (
    "x@gmail.com\nSecretPw1\ntempcode@mailinator.com\n"
    "y@gmail.com\nSecretPw2\nother@mailinator.com"
)
MULTI_ACCOUNT = (
    "Lamartina@gmail.com  0y3vnme7n  amyneeckok@hotmail.com  rG75Sz08  ar "
    "Schwuchow@gmail.com  45svjjbov  lisdeyovejam@hotmail.com  PIKtBu45  si"
)
SHARED = "a@gmail.com\nb@gmail.com\nc@gmail.com\nShared123!\nus ip"


class TestHelpers:
    def test_split_lines_drops_blanks(self):
        assert split_lines("  a \n\n b\n   \n") == ["a", "b"]

    def test_csv_fields_honour_quotes(self):
        assert csv_fields('a@x.com, "pw,with,commas", 123') == ["a@x.com", "pw,with,commas", "123"]

    def test_csv_density(self):
        assert is_csv_like("a,b,c,d")
        assert is_csv_like("a@x.com,pw,code")
        assert not is_csv_like("a@x.com,pw")

    def test_three_field_line(self):
        assert three_field_line("a@gmail.com pw1234 b@teml.net") == ("a@gmail.com", "pw1234", "b@teml.net")
        assert three_field_line("a@gmail.com | pw | b@teml.net") == ("a@gmail.com", "pw", "b@teml.net")
        assert three_field_line("a@gmail.com pw b@teml.net") is None
        assert three_field_line("a@gmail.com pw1234") is None

    def test_line_pairs(self):
        lines = ["a@gmail.com pw1", "x@teml.net", "b@gmail.com pw2", "y@teml.net"]
        pairs = line_pairs(lines)
        assert [(e, p, a) for e, p, a, _ in pairs] == [
            ("a@gmail.com", "pw1", "x@teml.net"),
            ("b@gmail.com", "pw2", "y@teml.net"),
        ]
        assert line_pairs(lines[:3]) == []

    def test_three_line_groups(self):
        groups = three_line_groups(split_lines(THREE_LINE))
        assert [g[0] for g in groups] == [0, 3]
        assert groups[0][1:] == ("x@gmail.com", "SecretPw1", "tempcode@mailinator.com")

    def test_csv_key_groups(self):
        lines = ["u@gmail.com,pw,123456,b@out.com", KEY, "noise", "v@gmail.com,pw2,1,c@out.com", f"{KEY} {KEY}"]
        groups = csv_key_groups(lines)
        assert groups == [
            ("u@gmail.com,pw,123456,b@out.com", [KEY]),
            ("v@gmail.com,pw2,1,c@out.com", [f"{KEY} {KEY}"]),
        ]

    def test_bare_email_line(self):
        assert is_bare_email_line("user@gmail.com")
        assert is_bare_email_line("邮箱: user@gmail.com")
        assert not is_bare_email_line("user@gmail.com hunter2")

    @pytest.mark.parametrize("line,kind", [
        ("GCP: a@gmail.com:pw123 2fa:abcd efgh", "gcp"),
        ("Gcp 300$: a@gmail.comPassword amail: pw1 Gmail: abcd efgh", "gcp_composite"),
        ("Gcp 300$: a@gmail.comPassword Gmail: pw1", "gcp_standard"),
        ("a@gmail.com: secret", "email_colon"),
        ("user@gmail.comPass99@@ukraine ip", "glued"),
        ("a@gmail.com secret 123456", "email_tokens"),
        ("a@gmail.com", None),
        ("a@gmail.com pw b@gmail.com", None),
    ])
    def test_chat_template_kind(self, line, kind):
        assert chat_template_kind(line) == kind


class TestCompactDetector:
    def test_single_account(self):
        assert detect_compact("test@gmail.com password123")

    def test_two_emails(self):
        assert detect_compact("a@gmail.com pw1 b@hotmail.com pw2")

    def test_pipe_and_dash_variants(self):
        assert detect_compact("a@gmail.com|pw1|aux@teml.net")
        assert detect_compact("a@gmail.com——pw1——aux@teml.net")

    def test_multi_line_shapes(self):
        assert detect_compact(
            "a@gmail.com pw1234 x@teml.net\nb@gmail.com pw5678 y@teml.net\nc@gmail.com pw9012 z@teml.net"
        )
        assert detect_compact("a@gmail.com pw1\nx@teml.net\nb@gmail.com pw2\ny@teml.net")

    def test_disqualifiers(self):
        assert not detect_compact("a@gmail.com pw 2fa: abcd")
        assert not detect_compact("a@gmail.com---pw---b@gmail.com")
        assert not detect_compact("[2025/8/24 12:53] a@gmail.com pw")
        assert not detect_compact("a@gmail.com pw,x,y,z extra")

    def test_delimiters_do_not_bypass_limits(self):
        assert not detect_compact("email,password,totp,backup_email\nu@gmail.com,p|w123,123456,b@out.com")
        assert not detect_compact("a@gmail.com|pw1 2fa: abcd efgh")
        assert not detect_compact(
            "账号: a@gmail.com 密码: Pw123456 —— 老王 店铺 来的 货\n\n账号: b@gmail.com 密码: Qw654321 备注 无"
        )

    def test_delimiter_needs_email_in_first_field(self):
        assert has_delimited_account("a@gmail.com | pw1")
        assert has_delimited_account("a@gmail.com——pw1")
        assert not has_delimited_account("备注 —— a@gmail.com 老王")
        assert not has_delimited_account("p|w123 a@gmail.com")

    def test_token_and_email_limits(self):
        assert not detect_compact("a@x.com,pw1")
        assert not detect_compact("a@gmail.com b@gmail.com c@gmail.com pw")
        assert not detect_compact("a@gmail.com " + " ".join(f"t{i}" for i in range(8)))
        assert not detect_compact("no email here at all")


class TestCsvDetector:
    def test_header(self):
        assert detect_csv("email,password,totp,backup_email\nu@gmail.com,pw,123456,b@out.com")

    def test_single_row(self):
        assert detect_csv("a@x.com,pw1")
        assert detect_csv("a@x.com,pw1,123456,b@y.com")

    def test_headerless_rows(self):
        assert detect_csv("a@x.com,pw1,111111\nb@x.com,pw2,222222")

    def test_negative(self):
        assert not detect_csv("name,age\nbob,42")
        assert not detect_csv("a@x.com,pw")
        assert not detect_csv("a@x.com pw1")


class TestThreeLineDetector:
    def test_two_groups(self):
        assert detect_three_line(THREE_LINE)

    def test_one_group_is_not_enough(self):
        assert not detect_three_line("x@gmail.com\nSecretPw1\ntempcode@mailinator.com")

    def test_ordinary_aux_domain(self):
        assert not detect_three_line("x@gmail.com\npw1\ny@gmail.com\na@gmail.com\npw2\nb@gmail.com")

    def test_two_fa_marker_vetoes(self):
        assert not detect_three_line(THREE_LINE + "\n2fa: abcd efgh")


class TestChatLogDetector:
    def test_timestamp_with_email(self):
        assert detect_chat_log("[2025/8/24 12:53] seller:\nuser@gmail.comPass99@@ukraine ip")

    def test_email_then_password_line(self):
        assert detect_chat_log("hi, here it is\nuser@gmail.com\nhunter22 turkey\nthanks")

    def test_bare_email_run_is_not_chat(self):
        assert not detect_chat_log(SHARED)

    def test_plain_prose(self):
        assert not detect_chat_log("nothing to see here\nreally")


class TestGroupedDetectors:
    def test_shared_password(self):
        assert detect_shared_password(SHARED)
        assert not detect_shared_password("a@gmail.com\nb@gmail.com\nshort")
        assert not detect_shared_password("a@gmail.com\nShared123!")

    def test_multi_account(self):
        assert detect_multi_account(MULTI_ACCOUNT)
        assert not detect_multi_account("a@gmail.com pw b@gmail.com pw2")
        assert not detect_multi_account("a@x.com b@x.com c@x.com d@x.com")


class TestDispatchOrder:
    def test_grammar_table_order(self):
        assert [g.name for g in GRAMMARS] == [
            "compact",
            "csv",
            "three_line",
            "csv_api_keys",
            "account_api_keys",
            "chat_log",
            "shared_password",
            "multi_account",
        ]
        assert FALLBACK_GRAMMAR.name == "free_form"

    @pytest.mark.parametrize("text,grammar", [
        ("test@gmail.com password123", "compact"),
        ("a@x.com,pw1", "csv"),
        ("email,password,totp,backup_email\nu@gmail.com,pw,123456,b@out.com", "csv"),
        (THREE_LINE, "three_line"),
        (f"u@gmail.com,pw,123456,b@out.com,x,y\n{KEY} {KEY}\nv@gmail.com,pw2,654321,c@out.com,x,y\n{KEY}", "csv_api_keys"),
        (f"u@gmail.com pw\n{KEY} {KEY} {KEY}\n{KEY} {KEY} {KEY}\n{KEY} {KEY}", "account_api_keys"),
        ("GCP: a@gmail.com:pw123 2fa:abcd efgh", "chat_log"),
        (SHARED, "shared_password"),
        (MULTI_ACCOUNT, "multi_account"),
        ("账号: a@gmail.com 密码: Pw123456\n---\n账号: b@gmail.com 密码: Qw654321", "free_form"),
    ])
    def test_routing(self, text, grammar):
        assert detect_grammar(text).name == grammar

    def test_csv_beats_compact_for_comma_pair(self):
        assert detect_grammar("a@x.com,pw1").name == "csv"

    def test_non_text_goes_to_fallback(self):
        assert detect_grammar(None) is FALLBACK_GRAMMAR
        assert detect_grammar("   ") is FALLBACK_GRAMMAR
