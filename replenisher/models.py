"""
Core data models for the factory replenisher.

These models define the domain objects used throughout the system:
- Inventory snapshots (item -> total count + slot locations)
- Machine configuration and scanned machine state
- Material, machine type, recipe and stock target definitions
- Assignments produced by schedulers and the outcomes of executing them
- Factory configuration for the distribution, production and processing phases
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator

STACK_SIZE = 64


# =============================================================================
# INVENTORY
# =============================================================================

class ItemStack(BaseModel):
    """What a single container slot holds."""
    item_id: str = Field(..., description="Namespaced item id, e.g. 'minecraft:sand'")
    count: int = Field(..., description="Number of items in the slot")


class SlotInfo(BaseModel):
    """A slot holding some amount of one item."""
    slot: int = Field(..., description="Slot index in the container")
    count: int = Field(..., gt=0, description="Items in that slot")


class InventoryItemInfo(BaseModel):
    """Total count of one item across a container, with its slot locations."""
    total_count: int = Field(..., ge=0, description="Total items across all slots")
    slots: list[SlotInfo] = Field(default_factory=list, description="Slots holding this item")

    @model_validator(mode="after")
    def validate_total(self):
        """Total must match the sum of the slot counts."""
        slot_sum = sum(s.count for s in self.slots)
        if slot_sum != self.total_count:
            raise ValueError(
                f"total_count {self.total_count} does not match slot sum {slot_sum}"
            )
        return self


class InventorySnapshot(BaseModel):
    """
    What is in a container right now, grouped by item id.

    A snapshot returned by a scan is treated as read-only. Anything that needs
    to simulate consumption (schedulers, the processing engine) works on
    planning_copy() and calls consume() on that copy only.
    """
    items: dict[str, InventoryItemInfo] = Field(default_factory=dict)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self.items

    def __len__(self) -> int:
        return len(self.items)

    def get(self, item_id: str) -> Optional[InventoryItemInfo]:
        return self.items.get(item_id)

    def total(self, item_id: str) -> int:
        info = self.items.get(item_id)
        return info.total_count if info else 0

    def pick_slot(self, item_id: str, amount: int) -> Optional[SlotInfo]:
        """First slot holding at least `amount` items, falling back to the first slot."""
        info = self.items.get(item_id)
        if not info or not info.slots:
            return None
        for slot_info in info.slots:
            if slot_info.count >= amount:
                return slot_info
        return info.slots[0]

    def consume(self, item_id: str, slot: int, amount: int) -> None:
        """
        Record that `amount` items leave `slot`.

        Drops the slot once it reaches zero and the item once its total does.
        Only call this on a planning copy.
        """
        info = self.items.get(item_id)
        if info is None:
            return
        for slot_info in info.slots:
            if slot_info.slot == slot:
                slot_info.count -= amount
                if slot_info.count <= 0:
                    info.slots.remove(slot_info)
                break
        info.total_count -= amount
        if info.total_count <= 0:
            del self.items[item_id]

    def planning_copy(self) -> "InventorySnapshot":
        """Deep copy that can be mutated without touching this snapshot."""
        return self.model_copy(deep=True)


# =============================================================================
# MACHINES
# =============================================================================

class MachineConfig(BaseModel):
    """A configured machine and the container it is fed through."""
    id: str = Field(..., description="Unique machine id, e.g. 'unearther_1'")
    type: str = Field(..., description="Machine type key, e.g. 'brusher'")
    input_container: str = Field(..., description="Transport name of the input container")


class MachineState(BaseModel):
    """A machine as seen by the latest scan."""
    id: str
    type: str
    input_container: str
    is_empty: bool = Field(..., description="True only if the input container was confirmed empty")


class ScanResult(BaseModel):
    """Result of scanning every configured machine."""
    results: list[MachineState] = Field(default_factory=list)
    empty_ids: list[str] = Field(default_factory=list)
    unreachable_ids: list[str] = Field(default_factory=list)


# =============================================================================
# SCHEDULING DEFINITIONS
# =============================================================================

class MaterialDefinition(BaseModel):
    """A material that can be distributed to machines."""
    id: str = Field(..., description="Material id, e.g. 'sand'")
    item_id: str = Field(..., description="Item id, e.g. 'minecraft:sand'")
    min_stock: int = Field(default=0, ge=0, description="Stock floor kept in the source")
    weight: float = Field(default=1.0, ge=0, description="Relative selection weight")


class MachineTypeDefinition(BaseModel):
    """Which materials a machine type accepts, in declared order."""
    id: str
    supported_materials: list[str] = Field(default_factory=list)


class RecipeDefinition(BaseModel):
    """A transformation a machine type performs."""
    input: str = Field(..., description="Input item id")
    output: str = Field(..., description="Output item id")


class StockTarget(BaseModel):
    """Desired stock level of an item."""
    item_id: str
    target_count: int = Field(..., gt=0)
    weight: float = Field(default=1.0, ge=0)
    min_reserve: Optional[int] = Field(
        default=None, ge=0, description="Stock kept back when this item is used as an input"
    )


class ChainLink(BaseModel):
    """One stage of the processing chain."""
    input: str
    output: str


# =============================================================================
# ASSIGNMENTS AND OUTCOMES
# =============================================================================

class Assignment(BaseModel):
    """A scheduling decision: move `amount` of `item_id` from `source_slot` to a machine."""
    machine_id: str
    target_container: str
    item_id: str
    source_slot: int
    amount: int = Field(..., gt=0)


class TransferOutcome(BaseModel):
    """Successful transfer; `transferred` is what actually moved."""
    transferred: int = Field(..., gt=0)
    source_slot: int


class OrchestratorTransfer(BaseModel):
    """A transfer the orchestrator completed for a machine."""
    machine_id: str
    item_id: str
    items_transferred: int
    source_slot: int


class RunResult(BaseModel):
    """Machine states from the cycle's scan plus the transfers that succeeded."""
    machine_states: list[MachineState] = Field(default_factory=list)
    transfers: list[OrchestratorTransfer] = Field(default_factory=list)


class ProcessingTransfer(BaseModel):
    """A stack moved into the processing container for one chain link."""
    input_item_id: str
    output_item_id: str
    items_transferred: int
    source_slot: int


# =============================================================================
# FACTORY CONFIGURATION
# =============================================================================

class DistributionConfig(BaseModel):
    """Weighted distribution of materials to machines."""
    enabled: bool = True
    machines: list[MachineConfig] = Field(default_factory=list)
    materials: dict[str, MaterialDefinition] = Field(default_factory=dict)
    machine_types: dict[str, MachineTypeDefinition] = Field(default_factory=dict)
    transfer_amount: int = Field(default=STACK_SIZE, gt=0)


class ProductionConfig(BaseModel):
    """Urgency-driven production across machines."""
    enabled: bool = True
    machines: list[MachineConfig] = Field(default_factory=list)
    recipes: dict[str, list[RecipeDefinition]] = Field(
        default_factory=dict, description="Machine type -> recipes"
    )
    stock_targets: list[StockTarget] = Field(default_factory=list)
    transfer_amount: int = Field(default=STACK_SIZE, gt=0)


class ProcessingConfig(BaseModel):
    """Chain processing through a shared container."""
    enabled: bool = True
    min_input_reserve: int = Field(default=2 * STACK_SIZE, ge=0)
    max_output_stock: int = Field(default=4 * STACK_SIZE, ge=0)
    transfer_amount: int = Field(default=STACK_SIZE, gt=0)
    chain: list[ChainLink] = Field(default_factory=list, description="Ordered chain links")


class FactoryConfig(BaseModel):
    """Configuration for the entire factory."""
    source_container: str = Field(..., description="Transport name of the central store")
    processing_container: Optional[str] = Field(default=None)
    distribution: Optional[DistributionConfig] = None
    production: Optional[ProductionConfig] = None
    processing: Optional[ProcessingConfig] = None

    def all_machines(self) -> list[MachineConfig]:
        """Machines from every enabled phase."""
        machines: list[MachineConfig] = []
        if self.distribution and self.distribution.enabled:
            machines.extend(self.distribution.machines)
        if self.production and self.production.enabled:
            machines.extend(self.production.machines)
        return machines
