from fundraiser.utils.phone import format_phone


def test_format_phone_strips_leading_zero_and_prepends_code():
    assert format_phone("0612345678") == "252612345678"


def test_format_phone_collapses_duplicate_country_code():
    assert format_phone("252252612345") == "252612345"
    assert format_phone("252252252612345") == "252612345"


def test_format_phone_drops_separators():
    assert format_phone("+252 61-234 5678") == "252612345678"
    assert format_phone("(061) 234.5678") == "252612345678"
    assert format_phone("00252612345678") == "252612345678"


def test_format_phone_empty_or_garbage_yields_empty_string():
    assert format_phone("") == ""
    assert format_phone(None) == ""
    assert format_phone("not a number") == ""
    assert format_phone("000") == ""


def test_format_phone_is_idempotent_and_digit_only():
    samples = ["0612345678", "+252 61 234 5678", "252252612345", "252252252612345", "612345678", "63-555-0101"]
    for raw in samples:
        once = format_phone(raw)
        assert once.isdigit()
        assert once.startswith("252")
        assert format_phone(once) == once


def test_format_phone_accepts_numeric_input_and_other_codes():
    assert format_phone(612345678) == "252612345678"
    assert format_phone("0712345678", country_code="254") == "254712345678"
