import secrets

from payu_bridge.utils.time import epoch_millis

TRANSACTION_ID_PREFIX = "TXN"


def generate_transaction_id() -> str:
    # Millisecond timestamp alone collides under concurrent initiations;
    # 32 random bits make same-millisecond collisions negligible.
    return f"{TRANSACTION_ID_PREFIX}{epoch_millis()}{secrets.token_hex(4)}"
