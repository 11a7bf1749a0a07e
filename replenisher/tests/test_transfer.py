"""
Tests for transfer.py - race-protected transfers.

Tests verify:
- A verified transfer moves items and reports the actual count
- A slot that changed since scheduling gives SLOT_CHANGED and moves nothing
- A move that reports zero items gives TRANSFER_FAILED, not an exception
- Partial moves succeed with the partial count
- Transport failures give DISCONNECTED
"""

from unittest.mock import MagicMock

from replenisher.containers import SafeContainer
from replenisher.errors import ErrorKind
from replenisher.models import ItemStack
from replenisher.transfer import execute_transfer

from replenisher.tests.helpers import safe


class TestExecuteTransfer:
    """Test execute_transfer outcomes."""

    def test_moves_full_amount(self, network):
        network.containers["source"].put(1, "minecraft:sand", 64)

        res = execute_transfer(safe(network, "source"), "target", 1, "minecraft:sand", 64)

        assert res.ok
        assert res.value.transferred == 64
        assert res.value.source_slot == 1
        assert network.containers["target"].count("minecraft:sand") == 64
        assert network.containers["source"].count("minecraft:sand") == 0

    def test_slot_changed_moves_nothing(self, network):
        """The slot was swapped to another item after scheduling."""
        source = network.containers["source"]
        source.put(1, "minecraft:sand", 64)
        container = safe(network, "source")

        # external actor swaps the slot between scheduling and execution
        source.put(1, "minecraft:gravel", 64)
        res = execute_transfer(container, "target", 1, "minecraft:sand", 64)

        assert res.kind == ErrorKind.SLOT_CHANGED
        assert res.error.context["expected"] == "minecraft:sand"
        assert res.error.context["actual"] == "minecraft:gravel"
        assert source.count("minecraft:gravel") == 64
        assert network.containers["target"].slots == {}

    def test_drained_slot_is_slot_changed(self, network):
        container = safe(network, "source")

        res = execute_transfer(container, "target", 5, "minecraft:sand", 64)

        assert res.kind == ErrorKind.SLOT_CHANGED
        assert res.error.context["actual"] == "empty"

    def test_zero_transferred_is_transfer_failed(self):
        """Move primitive returns 0 despite a correct pre-check."""
        handle = MagicMock()
        handle.peek.return_value = ItemStack(item_id="minecraft:sand", count=64)
        handle.move.return_value = 0
        source = SafeContainer("source", handle, MagicMock())

        res = execute_transfer(source, "target", 1, "minecraft:sand", 64)

        assert res.kind == ErrorKind.TRANSFER_FAILED
        assert res.error.context["reason"] == "no_items_transferred"
        handle.move.assert_called_once_with("target", 1, 64)

    def test_full_target_is_transfer_failed(self, network):
        tiny = network.add_container("tiny", size=1)
        tiny.put(1, "minecraft:dirt", 64)
        network.containers["source"].put(1, "minecraft:sand", 64)

        res = execute_transfer(safe(network, "source"), "tiny", 1, "minecraft:sand", 64)

        assert res.kind == ErrorKind.TRANSFER_FAILED
        assert network.containers["source"].count("minecraft:sand") == 64

    def test_partial_transfer_reports_actual_count(self, network):
        """Target can only take 24 more sand: success with transferred=24."""
        tiny = network.add_container("tiny", size=1)
        tiny.put(1, "minecraft:sand", 40)
        network.containers["source"].put(1, "minecraft:sand", 64)

        res = execute_transfer(safe(network, "source"), "tiny", 1, "minecraft:sand", 64)

        assert res.ok
        assert res.value.transferred == 24
        assert network.containers["source"].count("minecraft:sand") == 40

    def test_unreachable_target_is_disconnected(self, network):
        network.containers["source"].put(1, "minecraft:sand", 64)
        network.detach("target")

        res = execute_transfer(safe(network, "source"), "target", 1, "minecraft:sand", 64)

        assert res.kind == ErrorKind.DISCONNECTED
        assert network.containers["source"].count("minecraft:sand") == 64
