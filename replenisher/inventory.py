"""
Inventory scanning.

- scan_inventory(container) -> Result[InventorySnapshot]
- is_inventory_empty(container) -> Result[bool]
- has_free_slot(container) -> Result[bool]
- contains_item(container, item_id) -> Result[bool]

Reads go through SafeContainer.call, so transport failures come back as
Results rather than exceptions.
"""

from .containers import SafeContainer
from .errors import ErrorKind, Result
from .models import InventoryItemInfo, InventorySnapshot, SlotInfo


def scan_inventory(container: SafeContainer) -> Result[InventorySnapshot]:
    """
    Build a snapshot of a container, grouped by item id.

    Slots with no item id or a count <= 0 are skipped. An empty container is
    a successful, empty snapshot; a failed read (or a read returning None)
    is SCAN_FAILED.
    """
    read = container.call(lambda c: c.list())
    if not read.ok or read.value is None:
        return Result.failure(
            ErrorKind.SCAN_FAILED,
            "Failed to read container contents",
            name=container.name,
        )

    grouped: dict[str, list[SlotInfo]] = {}
    for slot in sorted(read.value):
        stack = read.value[slot]
        if stack is None or not stack.item_id or stack.count <= 0:
            continue
        grouped.setdefault(stack.item_id, []).append(SlotInfo(slot=slot, count=stack.count))

    items = {
        item_id: InventoryItemInfo(total_count=sum(s.count for s in slots), slots=slots)
        for item_id, slots in grouped.items()
    }
    return Result.success(InventorySnapshot(items=items))


def is_inventory_empty(container: SafeContainer) -> Result[bool]:
    """True only if no slot holds a positive count."""
    read = container.call(lambda c: c.list())
    if not read.ok or read.value is None:
        return Result.failure(ErrorKind.DISCONNECTED, "Failed to read container", name=container.name)

    for stack in read.value.values():
        if stack is not None and stack.count > 0:
            return Result.success(False)
    return Result.success(True)


def has_free_slot(container: SafeContainer) -> Result[bool]:
    """True if fewer slots are occupied than the container has."""
    read = container.call(lambda c: (c.size(), c.list()))
    if not read.ok or read.value[1] is None:
        return Result.failure(ErrorKind.DISCONNECTED, "Failed to read container", name=container.name)

    size, stacks = read.value
    occupied = sum(1 for stack in stacks.values() if stack is not None and stack.count > 0)
    return Result.success(occupied < size)


def contains_item(container: SafeContainer, item_id: str) -> Result[bool]:
    """True if any slot holds `item_id`."""
    read = container.call(lambda c: c.list())
    if not read.ok or read.value is None:
        return Result.failure(ErrorKind.DISCONNECTED, "Failed to read container", name=container.name)

    return Result.success(
        any(stack is not None and stack.item_id == item_id for stack in read.value.values())
    )
