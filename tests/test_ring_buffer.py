"""Ring buffer tests."""

from __future__ import annotations

import pytest

from memory.ring_buffer import RingBuffer, append_bounded, bounded


def test_ring_buffer_evicts_oldest() -> None:
    buffer: RingBuffer[int] = RingBuffer(3)
    assert buffer.push(1) is None
    buffer.push(2)
    buffer.push(3)
    assert buffer.push(4) == 1
    assert buffer.items() == [2, 3, 4]
    assert buffer.last() == 4
    assert len(buffer) == 3
    assert 3 in buffer


def test_ring_buffer_push_unique_skips_duplicates() -> None:
    buffer = RingBuffer(2, ["a"])
    assert buffer.push_unique("a") is False
    assert buffer.push_unique("b") is True
    assert buffer.push_unique("c") is True
    assert buffer.items() == ["b", "c"]


def test_ring_buffer_rejects_zero_capacity() -> None:
    with pytest.raises(ValueError):
        RingBuffer(0)


def test_list_helpers_keep_newest() -> None:
    assert bounded([1, 2, 3, 4, 5], 2) == [4, 5]
    assert append_bounded(["x", "y", "z"], "w", 3) == ["y", "z", "w"]
    assert append_bounded(["x", "y"], "y", 3, unique=True) == ["x", "y"]
    empty: RingBuffer[str] = RingBuffer(1)
    assert empty.last() is None
