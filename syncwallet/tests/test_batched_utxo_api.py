"""
Tests for address batching over the UTXO API.
"""

from __future__ import annotations

import pytest
from _syncwallet_test_helpers import (
    make_utxo_api,
    random_address,
    random_diff_input,
    random_diff_output,
    random_utxo,
    rollback,
    success,
)

from syncwallet.utxo.api import BatchedUtxoApi
from syncwallet.utxo.models import (
    UtxoApiResult,
    UtxoAtPointRequest,
    UtxoDiff,
    UtxoDiffSincePointRequest,
)


@pytest.mark.asyncio
async def test_utxo_at_point_batches_of_fifty() -> None:
    addresses = [random_address() for _ in range(120)]
    base = make_utxo_api()

    async def per_batch(req: UtxoAtPointRequest):  # type: ignore[no-untyped-def]
        return success([random_utxo(a) for a in req.addresses[:1]])

    base.get_utxo_at_point.side_effect = per_batch

    response = await BatchedUtxoApi(base).get_utxo_at_point(
        UtxoAtPointRequest(addresses=addresses, reference_block_hash="safe")
    )

    requests = [c.args[0] for c in base.get_utxo_at_point.await_args_list]
    assert [len(r.addresses) for r in requests] == [50, 50, 20]
    assert [a for r in requests for a in r.addresses] == addresses
    assert all(r.reference_block_hash == "safe" for r in requests)
    assert [u.receiver for u in response.unwrap()] == [addresses[0], addresses[50], addresses[100]]


@pytest.mark.asyncio
async def test_diff_items_concatenated_in_batch_order() -> None:
    addresses = [random_address() for _ in range(4)]
    first = [random_diff_output(addresses[0])]
    second = [random_diff_input("tx:0"), random_diff_output(addresses[3])]
    base = make_utxo_api()
    base.get_utxo_diff_since_point.side_effect = [
        success(UtxoDiff(diff_items=first)),
        success(UtxoDiff(diff_items=second)),
    ]

    response = await BatchedUtxoApi(base, batch_size=2).get_utxo_diff_since_point(
        UtxoDiffSincePointRequest(
            addresses=addresses, until_block_hash="best", after_best_block="after"
        )
    )

    assert response.unwrap().diff_items == first + second
    for call in base.get_utxo_diff_since_point.await_args_list:
        assert call.args[0].until_block_hash == "best"
        assert call.args[0].after_best_block == "after"


@pytest.mark.asyncio
async def test_rollback_in_any_batch_short_circuits() -> None:
    addresses = [random_address() for _ in range(6)]
    base = make_utxo_api()
    base.get_utxo_diff_since_point.side_effect = [
        success(UtxoDiff()),
        rollback(UtxoApiResult.BESTBLOCK_ROLLBACK),
        success(UtxoDiff()),
    ]

    response = await BatchedUtxoApi(base, batch_size=2).get_utxo_diff_since_point(
        UtxoDiffSincePointRequest(
            addresses=addresses, until_block_hash="best", after_best_block="after"
        )
    )

    assert response.result == UtxoApiResult.BESTBLOCK_ROLLBACK
    assert base.get_utxo_diff_since_point.await_count == 2


@pytest.mark.asyncio
async def test_safe_block_rollback_from_utxo_at_point() -> None:
    base = make_utxo_api()
    base.get_utxo_at_point.return_value = rollback(UtxoApiResult.SAFEBLOCK_ROLLBACK)

    response = await BatchedUtxoApi(base).get_utxo_at_point(
        UtxoAtPointRequest(addresses=[random_address()], reference_block_hash="gone")
    )

    assert response.result == UtxoApiResult.SAFEBLOCK_ROLLBACK


@pytest.mark.asyncio
async def test_passthrough_calls() -> None:
    base = make_utxo_api()
    base.get_safe_block.return_value = "safe"
    base.get_best_block.return_value = "best"
    base.get_tip_status_with_reference.return_value = rollback(UtxoApiResult.SAFEBLOCK_ROLLBACK)
    api = BatchedUtxoApi(base)

    assert await api.get_safe_block() == "safe"
    assert await api.get_best_block() == "best"
    tip = await api.get_tip_status_with_reference(["a"])
    assert tip.result == UtxoApiResult.SAFEBLOCK_ROLLBACK
    await api.close()
    base.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_no_addresses_makes_no_requests() -> None:
    base = make_utxo_api()

    response = await BatchedUtxoApi(base).get_utxo_at_point(
        UtxoAtPointRequest(addresses=[], reference_block_hash="safe")
    )

    assert response.unwrap() == []
    base.get_utxo_at_point.assert_not_awaited()


def test_invalid_batch_size() -> None:
    with pytest.raises(ValueError):
        BatchedUtxoApi(make_utxo_api(), batch_size=0)
