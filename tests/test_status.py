"""pay_state table and the order state machine."""
import pytest

from payapp.models.status import ORDER_TRANSITIONS, OrderStatus, can_transition, is_terminal
from payapp.services.callback import map_pay_state

EXPECTED = {
    "1": OrderStatus.PENDING,
    "4": OrderStatus.COMPLETED,
    "8": OrderStatus.CANCELLED,
    "16": OrderStatus.CANCELLED,
    "31": OrderStatus.CANCELLED,
    "32": OrderStatus.CANCELLED,
    "9": OrderStatus.REFUNDED,
    "64": OrderStatus.REFUNDED,
    "10": OrderStatus.WAITING,
}


@pytest.mark.parametrize("code", [str(n) for n in range(0, 101)])
def test_every_code_maps_to_exactly_one_status(code):
    assert map_pay_state(code) == EXPECTED.get(code, OrderStatus.FAILED)


@pytest.mark.parametrize("code", [None, "", "abc", "-4", "4.0", "99999"])
def test_odd_codes_are_failures(code):
    assert map_pay_state(code) == OrderStatus.FAILED


def test_int_and_padded_codes():
    assert map_pay_state(4) == OrderStatus.COMPLETED
    assert map_pay_state(" 4 ") == OrderStatus.COMPLETED
    assert map_pay_state("04") == OrderStatus.COMPLETED


def test_pending_can_reach_every_other_status():
    for status in OrderStatus:
        assert can_transition("pending", status.value) == (status != OrderStatus.PENDING)


def test_waiting_resolves_to_final_codes_only():
    assert can_transition("waiting", "completed")
    assert can_transition("waiting", "cancelled")
    assert can_transition("waiting", "failed")
    assert not can_transition("waiting", "pending")
    assert not can_transition("waiting", "refunded")


@pytest.mark.parametrize("terminal", ["completed", "failed", "cancelled", "refunded"])
def test_terminal_statuses_have_no_way_out(terminal):
    assert is_terminal(terminal)
    for status in OrderStatus:
        assert not can_transition(terminal, status.value)


def test_transition_table_covers_every_status():
    assert set(ORDER_TRANSITIONS) == set(OrderStatus)
    assert not is_terminal("pending")
    assert not is_terminal("waiting")
