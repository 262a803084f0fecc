"""Field ordering for PayU request and response hashes.

PayU computes SHA-512 over a pipe-joined string whose order is fixed by the
gateway. Requests are signed in the forward order with the salt appended;
responses are verified in the reverse order with the salt prepended.
"""
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

SEPARATOR = "|"
POPULATED_UDFS = ("udf1", "udf2", "udf3", "udf4", "udf5")
UDF_SLOTS = 10


def _value(params: Mapping[str, object], name: str) -> str:
    value = params.get(name)
    return "" if value is None else str(value)


def _required(params: Mapping[str, object], name: str) -> str:
    value = params.get(name)
    if value is None:
        raise ValueError(f"missing required field: {name}")
    return str(value)


def udf_values(params: Mapping[str, object]) -> list[str]:
    """udf1..udf10; only the first five are ever read from params."""
    values = [_value(params, name) for name in POPULATED_UDFS]
    return values + [""] * (UDF_SLOTS - len(values))


def format_amount(raw: object) -> str:
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation as exc:
        raise ValueError(f"amount is not numeric: {raw!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"amount is not finite: {raw!r}")
    return str(amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def forward_hash_string(params: Mapping[str, object], salt: str) -> str:
    # Amount is taken verbatim: PayU hashes the request exactly as posted.
    parts = [
        _value(params, "key"),
        _value(params, "txnid"),
        _value(params, "amount"),
        _value(params, "productinfo"),
        _value(params, "firstname"),
        _value(params, "email"),
        *udf_values(params),
        salt,
    ]
    return SEPARATOR.join(parts)


def reverse_hash_string(params: Mapping[str, object], salt: str, key: str) -> str:
    parts = [
        salt,
        _required(params, "status"),
        *reversed(udf_values(params)),
        _required(params, "email").strip(),
        _required(params, "firstname").strip(),
        _required(params, "productinfo").strip(),
        format_amount(_required(params, "amount")),
        _required(params, "txnid"),
        key,
    ]
    return SEPARATOR.join(parts)


MAX_INTEGER_DIGITS = 16


def parse_request_amount(raw: object) -> Decimal:
    """Parse an amount that will be signed verbatim and stored as Numeric(18, 2).

    Only plain decimal notation with at most two fractional digits is allowed,
    so the signed string and the stored value always agree.
    """
    text = str(raw).strip()
    if "e" in text.lower():
        raise ValueError("amount must be plain decimal notation")
    try:
        amount = Decimal(text)
    except InvalidOperation as exc:
        raise ValueError("amount must be a decimal number") from exc
    if not amount.is_finite() or amount <= 0:
        raise ValueError("amount must be > 0")
    if amount.as_tuple().exponent < -2:
        raise ValueError("amount must have at most two decimal places")
    if amount.adjusted() >= MAX_INTEGER_DIGITS:
        raise ValueError(f"amount must have at most {MAX_INTEGER_DIGITS} integer digits")
    return amount
