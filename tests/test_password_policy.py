import pytest

from fitrack.auth.policy import RULE_MESSAGES, validate_password


def test_strong_password_passes():
    result = validate_password("Abcdef1!")
    assert result.valid
    assert result.violations == ()
    assert result.messages == []


def test_single_letter_reports_every_missing_rule():
    result = validate_password("a")
    assert not result.valid
    assert result.violations == ("min_length", "uppercase", "digit", "special")


@pytest.mark.parametrize("password", ["", "A1!", "Ab1!xyz", "Aa1!Aa1"])
def test_short_passwords_report_length(password):
    assert "min_length" in validate_password(password).violations


@pytest.mark.parametrize(
    "password, missing",
    [
        ("ABCDEFG1!", "lowercase"),
        ("abcdefg1!", "uppercase"),
        ("Abcdefgh!", "digit"),
        ("Abcdefg12", "special"),
    ],
)
def test_missing_class_reports_exactly_that_rule(password, missing):
    assert validate_password(password).violations == (missing,)


def test_none_is_treated_as_empty():
    assert validate_password(None).violations == validate_password("").violations
    assert len(validate_password(None).violations) == 5


@pytest.mark.parametrize("symbol", list("!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"))
def test_every_listed_symbol_counts_as_special(symbol):
    assert "special" not in validate_password("Abcdef1" + symbol).violations


def test_symbols_outside_the_set_do_not_count():
    assert validate_password("Abcdefg1~").violations == ("special",)


def test_deterministic_and_messages_follow_rule_order():
    first = validate_password("abc")
    second = validate_password("abc")
    assert first == second
    assert first.messages == [RULE_MESSAGES[v] for v in first.violations]
    assert first.messages[0] == "Password must be at least 8 characters long"
