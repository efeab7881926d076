import pytest

from snip.validation import ValidationError, Validator


@pytest.fixture
def validator():
    return Validator()


@pytest.mark.parametrize("title", ["", "   "])
def test_empty_title_is_rejected(validator, title):
    with pytest.raises(ValidationError) as info:
        validator.validate_note(title)
    assert "title is required" in str(info.value)
    assert info.value.field == "title"
    assert info.value.message == "is required"


@pytest.mark.parametrize(
    "title",
    [
        "Test Note",
        "This is a very long title that might cause issues in some systems but "
        "should still be valid for our note creation",
        "Note with special chars: @#$%^&*()_+-=[]{}|;':\",./<>?",
    ],
)
def test_valid_titles_pass(validator, title):
    assert validator.validate_note(title) is None


def test_validation_error_is_value_error(validator):
    with pytest.raises(ValueError):
        validator.validate_note("\t\n")


def test_check_string_empty_gives_none(validator):
    assert validator.check_string("") is None


def test_check_string_returns_value(validator):
    assert validator.check_string("test-tag") == "test-tag"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1", 1),
        ("999", 999),
        ("-1", -1),
        ("+5", 5),
        ("0", 0),
        ("invalid", 0),
        ("", 0),
        (" 5", 0),
        ("1.5", 0),
        ("9223372036854775807", 9223372036854775807),
        ("9223372036854775808", 0),
    ],
)
def test_check_int(validator, text, expected):
    assert validator.check_int(text) == expected