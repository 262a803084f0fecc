import pytest

from payu_bridge.utils.canonical import format_amount, forward_hash_string, parse_request_amount, reverse_hash_string


def test_forward_string_uses_gateway_order_and_appends_salt():
    params = {
        "key": "KEY",
        "txnid": "TXN1",
        "amount": "499",
        "productinfo": "course2",
        "firstname": "Jane",
        "email": "jane@x.com",
    }
    assert forward_hash_string(params, "SALT") == "KEY|TXN1|499|course2|Jane|jane@x.com|||||||||||SALT"


def test_forward_string_keeps_amount_verbatim():
    assert forward_hash_string({"amount": "50000"}, "S").split("|")[2] == "50000"


def test_forward_string_never_reads_udf6_to_udf10():
    params = {"udf1": "a", "udf5": "e", "udf6": "ignored", "udf10": "ignored"}
    parts = forward_hash_string(params, "SALT").split("|")
    assert parts[6:16] == ["a", "", "", "", "e", "", "", "", "", ""]
    assert parts[-1] == "SALT"


def test_reverse_string_mirrors_forward_order_with_salt_first():
    params = {
        "status": "success",
        "udf1": "one",
        "udf2": "two",
        "email": " jane@x.com ",
        "firstname": "Jane Doe ",
        "productinfo": " course1",
        "amount": "50000",
        "txnid": "TXN1",
    }
    assert reverse_hash_string(params, "SALT", "KEY") == (
        "SALT|success|||||||||two|one|jane@x.com|Jane Doe|course1|50000.00|TXN1|KEY"
    )


@pytest.mark.parametrize("missing", ["status", "email", "firstname", "productinfo", "amount", "txnid"])
def test_reverse_string_requires_callback_fields(missing):
    params = {
        "status": "success",
        "email": "jane@x.com",
        "firstname": "Jane",
        "productinfo": "course1",
        "amount": "1.00",
        "txnid": "TXN1",
    }
    del params[missing]
    with pytest.raises(ValueError):
        reverse_hash_string(params, "SALT", "KEY")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("50000", "50000.00"), ("499.5", "499.50"), ("10.005", "10.01"), (" 7.1 ", "7.10"), (12, "12.00")],
)
def test_format_amount_two_decimals(raw, expected):
    assert format_amount(raw) == expected


@pytest.mark.parametrize("raw", ["", "abc", "NaN", "Infinity", "1,000"])
def test_format_amount_rejects_non_numeric(raw):
    with pytest.raises(ValueError):
        format_amount(raw)


@pytest.mark.parametrize(("raw", "expected"), [("750", "750"), ("499.5", "499.5"), ("50000.00", "50000.00")])
def test_parse_request_amount_accepts_plain_two_place_decimals(raw, expected):
    assert str(parse_request_amount(raw)) == expected


@pytest.mark.parametrize("raw", ["0.001", "1E+3", "2e1", "-1", "0", "NaN", "12345678901234567", "abc"])
def test_parse_request_amount_rejects_unstorable_values(raw):
    with pytest.raises(ValueError):
        parse_request_amount(raw)
