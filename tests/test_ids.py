from concurrent.futures import ThreadPoolExecutor

from payu_bridge.utils.ids import TRANSACTION_ID_PREFIX, generate_transaction_id


def test_transaction_id_shape():
    transaction_id = generate_transaction_id()
    assert transaction_id.startswith(TRANSACTION_ID_PREFIX)
    assert len(transaction_id) <= 64
    assert transaction_id[len(TRANSACTION_ID_PREFIX):].isalnum()


def test_transaction_ids_unique_within_same_millisecond():
    ids = [generate_transaction_id() for _ in range(5000)]
    assert len(set(ids)) == len(ids)


def test_transaction_ids_unique_across_threads():
    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(lambda _: generate_transaction_id(), range(2000)))
    assert len(set(ids)) == len(ids)
