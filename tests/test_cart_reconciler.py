from __future__ import annotations

import pytest

from edumall.core.exceptions import ValidationException
from edumall.domain.checkout import PendingCheckoutDetails
from edumall.services.cart_reconciler import CartMode, CartReconciler
from edumall.services.local_cart_store import LocalCartStore
from tests.conftest import BOUND, GUEST, FakeRemoteCart, make_item


@pytest.mark.asyncio
async def test_guest_add_aggregates_quantities(reconciler: CartReconciler, local_store) -> None:
    await reconciler.initialize(GUEST)

    await reconciler.add_to_cart(make_item(1), 2)
    await reconciler.add_to_cart(make_item(1), 3)
    await reconciler.add_to_cart(make_item(2))

    assert reconciler.mode is CartMode.GUEST
    assert [(line.id, line.quantity) for line in reconciler.items] == [(1, 5), (2, 1)]
    assert [line.id for line in local_store.load_guest_cart()] == [1, 2]


@pytest.mark.asyncio
async def test_add_rejects_quantity_below_one(reconciler: CartReconciler) -> None:
    await reconciler.initialize(GUEST)

    with pytest.raises(ValidationException):
        await reconciler.add_to_cart(make_item(1), 0)


@pytest.mark.asyncio
async def test_guest_remove_and_update(reconciler: CartReconciler) -> None:
    await reconciler.initialize(GUEST)
    await reconciler.add_to_cart(make_item(7, price=100), 2)
    await reconciler.add_to_cart(make_item(8, price=300), 1)

    assert await reconciler.remove_from_cart(99)
    assert reconciler.get_cart_count() == 2

    await reconciler.update_quantity(8, 4)
    assert reconciler.get_cart_total() == 100 * 2 + 300 * 4

    await reconciler.update_quantity(7, 0)
    assert [line.id for line in reconciler.items] == [8]
    assert reconciler.get_cart_count() == 1


@pytest.mark.asyncio
async def test_bound_mode_reads_server_after_each_mutation(
    reconciler: CartReconciler, remote: FakeRemoteCart
) -> None:
    remote.lines = {3: 1}
    await reconciler.initialize(BOUND)
    assert reconciler.mode is CartMode.BOUND
    assert [line.id for line in reconciler.items] == [3]

    await reconciler.add_to_cart(make_item(4), 2)
    await reconciler.update_quantity(3, 5)
    await reconciler.remove_from_cart(4)

    assert [(line.id, line.quantity) for line in reconciler.items] == [(3, 5)]
    assert remote.calls == [
        ("fetch",),
        ("add", 4, 2),
        ("fetch",),
        ("update", 3, 5),
        ("fetch",),
        ("remove", 4),
        ("fetch",),
    ]


@pytest.mark.asyncio
async def test_bound_update_to_zero_removes_line(reconciler, remote) -> None:
    remote.lines = {7: 2, 9: 1}
    await reconciler.initialize(BOUND)

    await reconciler.update_quantity(7, 0)

    assert [line.id for line in reconciler.items] == [9]
    assert ("remove", 7) in remote.calls


@pytest.mark.asyncio
async def test_network_error_keeps_last_known_good_items(reconciler, remote, notifier) -> None:
    remote.lines = {1: 2}
    await reconciler.initialize(BOUND)

    remote.fail_all = True
    ok = await reconciler.add_to_cart(make_item(2))

    assert not ok
    assert [(line.id, line.quantity) for line in reconciler.items] == [(1, 2)]
    assert reconciler.error == "Could not reach the server. Check your connection."
    assert notifier.errors
    assert not reconciler.is_loading


@pytest.mark.asyncio
async def test_bound_clear_retries_once_and_reports_failures(reconciler, remote, local_store) -> None:
    remote.lines = {1: 1, 2: 1, 3: 1}
    await reconciler.initialize(BOUND)
    reconciler.save_pending_checkout(PendingCheckoutDetails(items=[make_item(1)]))
    remote.failing_deletes = {2: 1, 3: -1}

    result = await reconciler.clear_cart()

    assert result.attempts == 2
    assert sorted(result.succeeded) == [1, 2]
    assert result.failed == [3]
    assert not result.ok
    assert reconciler.items == []
    assert not local_store.has_guest_cart()
    assert local_store.load_pending_checkout() is None
    assert reconciler.pending_checkout_details is None


@pytest.mark.asyncio
async def test_clear_is_local_even_when_server_is_down(reconciler, remote) -> None:
    remote.lines = {1: 1, 2: 1}
    await reconciler.initialize(BOUND)
    remote.fail_all = True

    result = await reconciler.clear_cart()

    assert reconciler.items == []
    assert sorted(result.failed) == [1, 2]
    assert result.attempts == 2


@pytest.mark.asyncio
async def test_clear_respects_configured_retry_passes(local_store, remote, notifier) -> None:
    reconciler = CartReconciler(local_store, remote, notifier=notifier, clear_retry_passes=0)
    remote.lines = {1: 1}
    await reconciler.initialize(BOUND)
    remote.failing_deletes = {1: 1}

    result = await reconciler.clear_cart()

    assert result.attempts == 1
    assert result.failed == [1]


@pytest.mark.asyncio
async def test_guest_clear_removes_both_keys(reconciler, local_store) -> None:
    await reconciler.initialize(GUEST)
    await reconciler.add_to_cart(make_item(1))
    reconciler.save_pending_checkout(PendingCheckoutDetails(items=[make_item(1)]))

    result = await reconciler.clear_cart()

    assert result.attempts == 0
    assert reconciler.items == []
    assert not local_store.has_guest_cart()
    assert local_store.load_pending_checkout() is None


@pytest.mark.asyncio
async def test_login_merges_guest_cart_once(reconciler, remote, local_store) -> None:
    await reconciler.initialize(GUEST)
    await reconciler.add_to_cart(make_item(1, price=5000), 2)

    await reconciler.on_auth_change(BOUND)
    second = await reconciler.merge_guest_cart()

    assert second.skipped
    assert remote.lines == {1: 2}
    assert [(line.id, line.quantity) for line in reconciler.items] == [(1, 2)]
    assert not local_store.has_guest_cart()


@pytest.mark.asyncio
async def test_merge_adds_to_existing_bound_lines(reconciler, remote) -> None:
    remote.lines = {1: 1, 5: 3}
    await reconciler.initialize(GUEST)
    await reconciler.add_to_cart(make_item(1), 2)
    await reconciler.add_to_cart(make_item(2), 1)

    result = await reconciler.on_auth_transition(BOUND)

    assert sorted(result.merged) == [1, 2]
    assert remote.lines == {1: 3, 5: 3, 2: 1}


@pytest.mark.asyncio
async def test_failed_merge_lines_stay_in_guest_cart_and_can_retry(
    reconciler, remote, local_store, notifier
) -> None:
    await reconciler.initialize(GUEST)
    await reconciler.add_to_cart(make_item(1), 1)
    await reconciler.add_to_cart(make_item(2), 4)
    remote.failing_adds = {2}

    result = await reconciler.on_auth_transition(BOUND)

    assert result.merged == [1]
    assert result.failed == [2]
    assert [line.id for line in local_store.load_guest_cart()] == [2]
    assert notifier.errors

    remote.failing_adds = set()
    retry = await reconciler.merge_guest_cart()

    assert retry.merged == [2]
    assert remote.lines == {1: 1, 2: 4}
    assert not local_store.has_guest_cart()


@pytest.mark.asyncio
async def test_merge_without_token_is_skipped(reconciler) -> None:
    await reconciler.initialize(GUEST)

    result = await reconciler.merge_guest_cart()

    assert result.skipped


@pytest.mark.asyncio
async def test_bound_start_with_leftover_guest_cart_merges(storage, remote, notifier) -> None:
    LocalCartStore(storage).save_guest_cart([make_item(1, quantity=2)])
    reconciler = CartReconciler(LocalCartStore(storage), remote, notifier=notifier)

    await reconciler.initialize(BOUND)

    assert reconciler.mode is CartMode.BOUND
    assert remote.lines == {1: 2}
    assert not LocalCartStore(storage).has_guest_cart()


@pytest.mark.asyncio
async def test_logout_clears_local_state_without_remote_calls(reconciler, remote, local_store) -> None:
    remote.lines = {1: 1}
    await reconciler.initialize(BOUND)
    reconciler.save_pending_checkout(PendingCheckoutDetails(items=[make_item(1)]))
    calls_before = list(remote.calls)

    await reconciler.on_auth_change(GUEST)

    assert reconciler.mode is CartMode.GUEST
    assert reconciler.items == []
    assert remote.calls == calls_before
    assert local_store.load_pending_checkout() is None
    assert remote.lines == {1: 1}


@pytest.mark.asyncio
async def test_pending_checkout_loaded_on_initialize(storage, remote) -> None:
    LocalCartStore(storage).save_pending_checkout(PendingCheckoutDetails(items=[make_item(4)]))
    reconciler = CartReconciler(LocalCartStore(storage), remote)

    await reconciler.initialize(GUEST)

    assert reconciler.is_initialized
    assert reconciler.pending_checkout_details.items[0].id == 4


@pytest.mark.asyncio
async def test_login_drops_guest_lines_when_bound_cart_cannot_be_read(reconciler, remote) -> None:
    await reconciler.initialize(GUEST)
    await reconciler.add_to_cart(make_item(1), 2)
    remote.fail_fetch = True

    await reconciler.on_auth_change(BOUND)

    assert reconciler.mode is CartMode.BOUND
    assert reconciler.items == []
    assert reconciler.error
    assert remote.lines == {1: 2}
