"""
Tests for processing.py - chain processing through a shared container.

Tests verify:
- A full processing container stops the walk: no later link is attempted
- A link whose input already sits in the container is skipped, others still run
- Input reserve and output cap thresholds
- A zero-item move is a failure and leaves the running inventory untouched
- Disabled or absent config is a no-op; a missing container is CONTAINER_MISSING
"""

from unittest.mock import MagicMock, patch

import pytest

from replenisher.containers import SafeContainer
from replenisher.errors import ErrorKind
from replenisher.models import ChainLink, ItemStack, ProcessingConfig
from replenisher.processing import ProcessingEngine
from replenisher.transfer import execute_transfer
from replenisher.world import SimulatedNetwork

from replenisher.tests.helpers import make_snapshot, safe

CHAIN = [
    ChainLink(input="minecraft:cobblestone", output="minecraft:dirt"),
    ChainLink(input="minecraft:dirt", output="minecraft:gravel"),
    ChainLink(input="minecraft:gravel", output="minecraft:sand"),
    ChainLink(input="minecraft:sand", output="exnihilo:dust"),
]


@pytest.fixture
def plant():
    """Source stocked with 4 stacks of every chain input, and a 9-slot processing chest."""
    net = SimulatedNetwork()
    source = net.add_container("source", size=27)
    net.add_container("processing", size=9)
    for link in CHAIN:
        source.insert(link.input, 4 * 64)
    return net


def config(**overrides) -> ProcessingConfig:
    values = dict(min_input_reserve=128, max_output_stock=10_000, chain=CHAIN)
    values.update(overrides)
    return ProcessingConfig(**values)


class TestProcessChain:
    """Test the chain walk."""

    def test_feeds_every_qualifying_link(self, plant):
        res = ProcessingEngine().run_phase(config(), safe(plant, "source"), safe(plant, "processing"))

        assert res.ok
        assert [t.input_item_id for t in res.value] == [link.input for link in CHAIN]
        assert all(t.items_transferred == 64 for t in res.value)
        chest = plant.containers["processing"]
        assert all(chest.count(link.input) == 64 for link in CHAIN)

    def test_full_container_breaks_chain(self, plant):
        """With one free slot, link 1 fills it and links 2-4 are never attempted."""
        chest = plant.containers["processing"]
        for slot in range(1, 9):
            chest.put(slot, "minecraft:stone", 64)

        with patch("replenisher.processing.execute_transfer", wraps=execute_transfer) as spy:
            res = ProcessingEngine().run_phase(config(), safe(plant, "source"), safe(plant, "processing"))

        assert [t.input_item_id for t in res.value] == ["minecraft:cobblestone"]
        assert spy.call_count == 1

    def test_full_from_start_attempts_nothing(self, plant):
        chest = plant.containers["processing"]
        for slot in range(1, 10):
            chest.put(slot, "minecraft:stone", 64)

        with patch("replenisher.processing.execute_transfer") as mock_transfer:
            res = ProcessingEngine().run_phase(config(), safe(plant, "source"), safe(plant, "processing"))

        assert res.ok
        assert res.value == []
        mock_transfer.assert_not_called()

    def test_skips_link_already_in_container(self, plant):
        """Link 2's input is already in the chest: links 1, 3 and 4 still run."""
        plant.containers["processing"].put(1, "minecraft:dirt", 10)

        res = ProcessingEngine().run_phase(config(), safe(plant, "source"), safe(plant, "processing"))

        assert [t.input_item_id for t in res.value] == [
            "minecraft:cobblestone",
            "minecraft:gravel",
            "minecraft:sand",
        ]

    def test_input_below_reserve_is_skipped(self, plant):
        """Reserve 128 + 64: cobblestone at 191 does not qualify."""
        source = plant.containers["source"]
        source.take(1, 64)
        source.take(2, 1)

        res = ProcessingEngine().run_phase(config(), safe(plant, "source"), safe(plant, "processing"))

        assert "minecraft:cobblestone" not in [t.input_item_id for t in res.value]
        assert len(res.value) == 3

    def test_output_at_cap_is_skipped(self, plant):
        """Every chain output but dust already sits at the 256 cap."""
        res = ProcessingEngine().run_phase(
            config(max_output_stock=256), safe(plant, "source"), safe(plant, "processing")
        )

        assert [t.input_item_id for t in res.value] == ["minecraft:sand"]

    def test_uses_pre_scanned_without_mutating_it(self, plant):
        pre_scanned = make_snapshot({"minecraft:cobblestone": [(1, 64), (2, 64), (3, 64), (4, 64)]})
        before = pre_scanned.model_dump()

        with patch("replenisher.processing.scan_inventory") as mock_scan:
            res = ProcessingEngine().run_phase(
                config(chain=CHAIN[:1]),
                safe(plant, "source"),
                safe(plant, "processing"),
                pre_scanned=pre_scanned,
            )

        mock_scan.assert_not_called()
        assert len(res.value) == 1
        assert pre_scanned.model_dump() == before

    def test_zero_transferred_does_not_decrement_inventory(self):
        """Move returns 0 after a correct pre-check: failure, and the running inventory is untouched."""
        handle = MagicMock()
        handle.peek.return_value = ItemStack(item_id="minecraft:cobblestone", count=64)
        handle.move.return_value = 0
        source = SafeContainer("source", handle, MagicMock())

        chest = SimulatedNetwork().add_container("processing", size=9)
        processing = SafeContainer("processing", chest, MagicMock())

        inventory = make_snapshot({"minecraft:cobblestone": [(1, 64), (2, 64), (3, 64)]})
        results = ProcessingEngine().process_chain(config(chain=CHAIN[:1]), source, processing, inventory)

        assert results == []
        assert inventory.total("minecraft:cobblestone") == 192
        assert len(inventory.get("minecraft:cobblestone").slots) == 3


class TestRunPhase:
    """Test phase-level outcomes."""

    def test_disabled_is_noop(self, plant):
        res = ProcessingEngine().run_phase(
            config(enabled=False), safe(plant, "source"), safe(plant, "processing")
        )

        assert res.ok
        assert res.noop
        assert res.value == []

    def test_absent_config_is_noop(self, plant):
        res = ProcessingEngine().run_phase(None, safe(plant, "source"), None)

        assert res.ok and res.noop

    def test_missing_container(self, plant):
        res = ProcessingEngine().run_phase(config(), safe(plant, "source"), None)

        assert res.kind == ErrorKind.CONTAINER_MISSING

    def test_source_scan_failure_is_empty_success(self, plant):
        source = safe(plant, "source")
        plant.detach("source")

        res = ProcessingEngine().run_phase(config(), source, safe(plant, "processing"))

        assert res.ok
        assert res.value == []
