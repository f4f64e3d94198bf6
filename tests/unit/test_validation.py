"""Unit tests for the input validators."""

import pytest

from finalexam.errors import ValidationError
from finalexam.validation import (
    truncate_avatar,
    validate_bool,
    validate_challenge_code,
    validate_email,
    validate_members,
    validate_non_negative_int,
    validate_password,
    validate_round_results,
    validate_string,
)


def _message(fn, *args) -> str:
    with pytest.raises(ValidationError) as exc_info:
        fn(*args)
    return exc_info.value.message


class TestValidateString:
    def test_trims(self):
        assert validate_string("  hello  ", "name", 10) == "hello"

    def test_non_string(self):
        assert _message(validate_string, 5, "name", 10) == "name must be a string"
        assert _message(validate_string, None, "name", 10) == "name must be a string"

    def test_blank(self):
        assert _message(validate_string, "   ", "name", 10) == "name is required"

    def test_too_long_after_trim(self):
        assert validate_string("  " + "a" * 10 + "  ", "name", 10) == "a" * 10
        assert _message(validate_string, "a" * 11, "name", 10) == "name exceeds max length of 10"

    def test_lone_surrogate_is_not_text(self):
        assert _message(validate_string, "abc\ud800", "name", 10) == "name must be valid text"

    def test_validation_error_is_a_400(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_string(None, "x", 1)
        assert exc_info.value.status_code == 400
        assert isinstance(exc_info.value, ValueError)


class TestValidateEmail:
    @pytest.mark.parametrize("email", ["a@b.co", "first.last@sub.example.org", "x+tag@y.io"])
    def test_valid(self, email):
        assert validate_email(email) == email

    @pytest.mark.parametrize("email", ["plain", "a@b", "@b.co", "a b@c.io", "a@b c.io"])
    def test_invalid_format(self, email):
        assert _message(validate_email, email) == "Invalid email format"

    def test_too_long(self):
        assert _message(validate_email, "a" * 250 + "@x.com") == "email exceeds max length of 255"


class TestValidatePassword:
    def test_valid(self):
        assert validate_password("password123") == "password123"

    def test_too_short(self):
        assert _message(validate_password, "1234567") == "Password must be at least 8 characters"

    def test_too_long(self):
        assert _message(validate_password, "p" * 129) == "password exceeds max length of 128"

    def test_surrounding_spaces_are_kept(self):
        assert validate_password("  password123  ") == "  password123  "
        assert _message(validate_password, " short ") == "Password must be at least 8 characters"
        assert _message(validate_password, " " * 9) == "password is required"


class TestValidateChallengeCode:
    def test_uppercases(self):
        assert validate_challenge_code("abc234") == "ABC234"

    @pytest.mark.parametrize("code", ["ABCDE", "ABCDEFG", "ABCDE1", "ABCDE0", "ABCDEI", "ABCDEL", "ABCDEO", "ABC-23"])
    def test_rejects_wrong_alphabet_or_length(self, code):
        message = _message(validate_challenge_code, code)
        assert message in ("Invalid challenge code format", "challengeCode exceeds max length of 6")

    def test_non_string(self):
        assert _message(validate_challenge_code, 123456) == "challengeCode must be a string"


class TestValidateMembers:
    def test_truncates_fields(self):
        members = validate_members(
            [{"id": "i" * 150, "name": "n" * 150, "avatar": "a" * 600, "extra": "dropped"}]
        )
        assert members == [{"id": "i" * 100, "name": "n" * 100, "avatar": "a" * 500}]

    def test_missing_avatar_defaults_to_empty(self):
        assert validate_members([{"id": "1", "name": "Ann", "avatar": 7}]) == [{"id": "1", "name": "Ann", "avatar": ""}]

    def test_not_a_list(self):
        assert _message(validate_members, {"id": "1"}) == "members must be an array"

    def test_too_many(self):
        many = [{"id": str(i), "name": "x"} for i in range(11)]
        assert _message(validate_members, many) == "Maximum 10 members allowed"

    @pytest.mark.parametrize("bad", [None, "x", {"id": 1, "name": "x"}, {"id": "1"}])
    def test_invalid_entry(self, bad):
        assert _message(validate_members, [{"id": "0", "name": "ok"}, bad]) == "Invalid member at index 1"


class TestValidateRoundResults:
    def test_valid_entries(self):
        results = validate_round_results([{"round": 1, "score": 250.5, "details": "d" * 600}, {"round": 2, "score": 0}])
        assert results == [
            {"round": 1, "score": 250.5, "details": "d" * 500},
            {"round": 2, "score": 0, "details": ""},
        ]

    def test_not_a_list(self):
        assert _message(validate_round_results, "nope") == "roundResults must be an array"

    def test_too_many(self):
        many = [{"round": i, "score": 1} for i in range(11)]
        assert _message(validate_round_results, many) == "Maximum 10 round results allowed"

    @pytest.mark.parametrize(
        "bad",
        [{"round": "1", "score": 1}, {"round": 1}, {"round": True, "score": 1}, {"round": 1, "score": float("nan")}],
    )
    def test_invalid_entry(self, bad):
        assert _message(validate_round_results, [bad]) == "Invalid round result at index 0"


class TestNumbersAndFlags:
    def test_non_negative_int(self):
        assert validate_non_negative_int(0, "n") == 0
        assert validate_non_negative_int(12.0, "n") == 12

    @pytest.mark.parametrize(
        ("value", "message"),
        [
            ("5", "n must be a number"),
            (True, "n must be a number"),
            (1.5, "n must be a whole number"),
            (-1, "n must not be negative"),
            (10_000_001, "n exceeds maximum of 10000000"),
        ],
    )
    def test_non_negative_int_rejects(self, value, message):
        assert _message(validate_non_negative_int, value, "n") == message

    def test_bool(self):
        assert validate_bool(False, "isWinner") is False
        assert _message(validate_bool, 1, "isWinner") == "isWinner must be a boolean"

    def test_unencodable_text_fields(self):
        assert truncate_avatar("img\ud800") == ""
        assert _message(validate_members, [{"id": "m\udfff", "name": "x"}]) == "Invalid member at index 0"
        assert validate_round_results([{"round": 1, "score": 2, "details": "\ud800"}])[0]["details"] == ""

    def test_truncate_avatar(self):
        assert truncate_avatar("x" * 501) == "x" * 500
        assert truncate_avatar(None) == ""
        assert truncate_avatar(42) == ""
