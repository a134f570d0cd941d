"""
Tests for the per-order pending-operation guard.
"""
import threading

import pytest

from prodqueue.exceptions import OrderOperationInProgress
from prodqueue.order_lock import OrderLockManager


@pytest.fixture
def manager():
    return OrderLockManager(timeout_seconds=1)


def test_lock_released_after_block(manager):
    with manager.acquire_order_lock(1, "update_status"):
        assert manager.is_locked(1)
        assert manager.get_current_operation(1) == "update_status"
    assert not manager.is_locked(1)
    assert manager.get_current_operation(1) is None


def test_lock_released_on_exception(manager):
    with pytest.raises(ValueError):
        with manager.acquire_order_lock(1, "update_status"):
            raise ValueError("boom")
    assert not manager.is_locked(1)


def test_different_orders_do_not_block(manager):
    with manager.acquire_order_lock(1, "update_status"):
        with manager.acquire_order_lock(2, "update_position"):
            assert manager.is_locked(1)
            assert manager.is_locked(2)


def test_same_thread_reentry(manager):
    with manager.acquire_order_lock(1, "delete_order"):
        with manager.acquire_order_lock(1, "renumber"):
            assert manager.is_locked(1)
        # Outer holder still owns it
        assert manager.is_locked(1)
    assert not manager.is_locked(1)


def test_second_thread_rejected(manager):
    holding = threading.Event()
    release = threading.Event()
    errors = []

    def hold():
        with manager.acquire_order_lock(1, "update_status"):
            holding.set()
            release.wait(5)

    def contend():
        try:
            with manager.acquire_order_lock(1, "update_position"):
                pass
        except OrderOperationInProgress as exc:
            errors.append(exc)

    holder = threading.Thread(target=hold)
    holder.start()
    assert holding.wait(5)

    contender = threading.Thread(target=contend)
    contender.start()
    contender.join(5)

    release.set()
    holder.join(5)

    assert len(errors) == 1
    assert "update_status" in str(errors[0])
    assert not manager.is_locked(1)


def test_status_lists_held_locks(manager):
    with manager.acquire_order_lock(7, "delete_order"):
        status = manager.get_status()
    assert status["locked_orders"]["7"]["operation"] == "delete_order"
    assert status["timeout_seconds"] == 1


def test_configure_changes_timeout(manager):
    manager.configure(timeout_seconds=9)
    assert manager.get_status()["timeout_seconds"] == 9
    manager.configure(timeout_seconds=None)
    assert manager.get_status()["timeout_seconds"] == 9
