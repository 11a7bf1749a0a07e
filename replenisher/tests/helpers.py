"""Builders shared by the replenisher tests."""

from replenisher.containers import SafeContainer, wrap_container
from replenisher.models import (
    InventoryItemInfo,
    InventorySnapshot,
    MachineState,
    SlotInfo,
)
from replenisher.world import SimulatedNetwork


def make_snapshot(items: dict[str, list[tuple[int, int]]]) -> InventorySnapshot:
    """Build a snapshot from item id -> [(slot, count), ...]."""
    return InventorySnapshot(
        items={
            item_id: InventoryItemInfo(
                total_count=sum(count for _, count in slots),
                slots=[SlotInfo(slot=slot, count=count) for slot, count in slots],
            )
            for item_id, slots in items.items()
        }
    )


def make_machine(machine_id: str, machine_type: str, is_empty: bool = True) -> MachineState:
    return MachineState(
        id=machine_id,
        type=machine_type,
        input_container=f"chest_{machine_id}",
        is_empty=is_empty,
    )


def safe(network: SimulatedNetwork, name: str) -> SafeContainer:
    res = wrap_container(network, name)
    assert res.ok, res.error
    return res.value
