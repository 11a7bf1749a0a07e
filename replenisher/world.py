"""
Simulated Factory World

An in-memory stand-in for the container network:
- SimulatedContainer: slot storage with a per-slot stack limit
- SimulatedNetwork: named containers; containers can be detached to make
  them unreachable, and moves resolve their target through the network
- ToyWorld: a network plus a FactoryConfig and an external actor (tick())
  that drains machine inputs and runs the processing chain
- build_toy_factory(): three distribution machines, one production machine
  and a four-link chain over a stocked source
"""

from dataclasses import dataclass, field
from typing import Optional

from .containers import Container, Transport
from .errors import TransportError
from .models import (
    STACK_SIZE,
    ChainLink,
    DistributionConfig,
    FactoryConfig,
    ItemStack,
    MachineConfig,
    MachineTypeDefinition,
    MaterialDefinition,
    ProcessingConfig,
    ProductionConfig,
    RecipeDefinition,
    StockTarget,
)


class SimulatedContainer(Container):
    """Slot storage living on a SimulatedNetwork. Slots are numbered from 1."""

    def __init__(
        self,
        name: str,
        size: int,
        network: Optional["SimulatedNetwork"] = None,
        max_stack: int = STACK_SIZE,
    ):
        self.name = name
        self._size = size
        self.network = network
        self.max_stack = max_stack
        self.slots: dict[int, ItemStack] = {}

    def _check_reachable(self) -> None:
        if self.network is not None and not self.network.is_present(self.name):
            raise TransportError(f"{self.name} is not reachable")

    # -- Container interface --------------------------------------------------

    def list(self) -> dict[int, ItemStack]:
        self._check_reachable()
        return {slot: stack.model_copy() for slot, stack in self.slots.items()}

    def size(self) -> int:
        self._check_reachable()
        return self._size

    def peek(self, slot: int) -> Optional[ItemStack]:
        self._check_reachable()
        stack = self.slots.get(slot)
        return stack.model_copy() if stack else None

    def move(self, target_name: str, slot: int, amount: int) -> int:
        self._check_reachable()
        if self.network is None:
            raise TransportError(f"{self.name} is not attached to a network")
        target = self.network.containers.get(target_name)
        if target is None or not self.network.is_present(target_name):
            raise TransportError(f"target {target_name} is not reachable")

        stack = self.slots.get(slot)
        if stack is None or amount <= 0:
            return 0

        moved = target.insert(stack.item_id, min(amount, stack.count))
        self.take(slot, moved)
        return moved

    # -- Direct manipulation (external actors and tests) ---------------------

    def put(self, slot: int, item_id: str, count: int) -> None:
        """Overwrite a slot."""
        if count <= 0:
            self.slots.pop(slot, None)
        else:
            self.slots[slot] = ItemStack(item_id=item_id, count=count)

    def take(self, slot: int, count: int) -> int:
        """Remove up to `count` items from a slot; returns how many were removed."""
        stack = self.slots.get(slot)
        if stack is None:
            return 0
        removed = min(count, stack.count)
        stack.count -= removed
        if stack.count <= 0:
            del self.slots[slot]
        return removed

    def insert(self, item_id: str, count: int) -> int:
        """Add items, topping up matching stacks before using empty slots."""
        remaining = count
        for slot in sorted(self.slots):
            stack = self.slots[slot]
            if stack.item_id == item_id and stack.count < self.max_stack:
                added = min(remaining, self.max_stack - stack.count)
                stack.count += added
                remaining -= added
                if remaining == 0:
                    return count
        for slot in range(1, self._size + 1):
            if slot not in self.slots:
                added = min(remaining, self.max_stack)
                self.slots[slot] = ItemStack(item_id=item_id, count=added)
                remaining -= added
                if remaining == 0:
                    break
        return count - remaining

    def clear(self) -> dict[str, int]:
        """Empty the container; returns item id -> count removed."""
        removed: dict[str, int] = {}
        for stack in self.slots.values():
            removed[stack.item_id] = removed.get(stack.item_id, 0) + stack.count
        self.slots.clear()
        return removed

    def count(self, item_id: str) -> int:
        return sum(s.count for s in self.slots.values() if s.item_id == item_id)


class SimulatedNetwork(Transport):
    """Named containers reachable by name; detached containers are unreachable."""

    def __init__(self):
        self.containers: dict[str, SimulatedContainer] = {}
        self.detached: set[str] = set()

    def add_container(self, name: str, size: int = 27, max_stack: int = STACK_SIZE) -> SimulatedContainer:
        container = SimulatedContainer(name, size, network=self, max_stack=max_stack)
        self.containers[name] = container
        return container

    def detach(self, name: str) -> None:
        self.detached.add(name)

    def attach(self, name: str) -> None:
        self.detached.discard(name)

    def is_present(self, name: str) -> bool:
        return name in self.containers and name not in self.detached

    def connect(self, name: str) -> Optional[Container]:
        if not self.is_present(name):
            return None
        return self.containers[name]


@dataclass
class ToyWorld:
    """A factory config, its simulated network, and the external actor driving it."""
    config: FactoryConfig
    network: SimulatedNetwork
    tick_count: int = 0
    consumed: dict[str, int] = field(default_factory=dict)

    @property
    def source(self) -> SimulatedContainer:
        return self.network.containers[self.config.source_container]

    def tick(self) -> None:
        """
        Advance the world by one step.

        Every machine consumes whatever sits in its input container, and the
        processing container turns each chain input into its output and pushes
        it back into the source.
        """
        self.tick_count += 1

        for machine in self.config.all_machines():
            container = self.network.containers.get(machine.input_container)
            if container is None:
                continue
            for item_id, count in container.clear().items():
                self.consumed[item_id] = self.consumed.get(item_id, 0) + count

        processing = self.config.processing
        name = self.config.processing_container
        if processing is None or name is None or name not in self.network.containers:
            return
        outputs = {link.input: link.output for link in processing.chain}
        for item_id, count in self.network.containers[name].clear().items():
            self.source.insert(outputs.get(item_id, item_id), count)


def build_toy_config() -> FactoryConfig:
    """
    Build the toy factory configuration.

    - Distribution: two brushers (sand, gravel) and a soul processor (soul sand)
    - Production: one hammer working the cobblestone -> dust chain by urgency
    - Processing: the same chain fed through a shared processing chest
    """
    materials = {
        "sand": MaterialDefinition(id="sand", item_id="minecraft:sand", min_stock=128, weight=3),
        "soul_sand": MaterialDefinition(id="soul_sand", item_id="minecraft:soul_sand", min_stock=64, weight=1),
        "gravel": MaterialDefinition(id="gravel", item_id="minecraft:gravel", min_stock=64, weight=1),
    }
    machine_types = {
        "brusher": MachineTypeDefinition(id="brusher", supported_materials=["sand", "gravel"]),
        "soul_processor": MachineTypeDefinition(id="soul_processor", supported_materials=["soul_sand"]),
    }
    distribution = DistributionConfig(
        machines=[
            MachineConfig(id="unearther_1", type="brusher", input_container="chest_0"),
            MachineConfig(id="unearther_2", type="soul_processor", input_container="chest_1"),
            MachineConfig(id="unearther_3", type="brusher", input_container="chest_2"),
        ],
        materials=materials,
        machine_types=machine_types,
    )

    chain = [
        ChainLink(input="minecraft:cobblestone", output="minecraft:dirt"),
        ChainLink(input="minecraft:dirt", output="minecraft:gravel"),
        ChainLink(input="minecraft:gravel", output="minecraft:sand"),
        ChainLink(input="minecraft:sand", output="exnihilo:dust"),
    ]
    production = ProductionConfig(
        machines=[MachineConfig(id="hammer_1", type="hammer", input_container="chest_3")],
        recipes={"hammer": [RecipeDefinition(input=link.input, output=link.output) for link in chain]},
        stock_targets=[
            StockTarget(item_id="minecraft:dirt", target_count=8 * STACK_SIZE, weight=1, min_reserve=2 * STACK_SIZE),
            StockTarget(item_id="minecraft:gravel", target_count=16 * STACK_SIZE, weight=2, min_reserve=4 * STACK_SIZE),
            StockTarget(item_id="minecraft:sand", target_count=16 * STACK_SIZE, weight=2, min_reserve=4 * STACK_SIZE),
            StockTarget(item_id="exnihilo:dust", target_count=8 * STACK_SIZE, weight=1),
        ],
    )

    return FactoryConfig(
        source_container="controller_0",
        processing_container="chest_10",
        distribution=distribution,
        production=production,
        processing=ProcessingConfig(chain=chain),
    )


def build_network(config: FactoryConfig, source_size: int = 81) -> SimulatedNetwork:
    """Create every container the config references, all empty."""
    network = SimulatedNetwork()
    network.add_container(config.source_container, size=source_size)
    if config.processing_container:
        network.add_container(config.processing_container, size=9)
    for machine in config.all_machines():
        if machine.input_container not in network.containers:
            network.add_container(machine.input_container, size=9)
    return network


def build_toy_factory() -> ToyWorld:
    """
    Build the toy world with a stocked source.

    The source starts with 16 stacks of cobblestone and a handful of stacks
    of every other material so that all phases have work on the first tick.
    """
    config = build_toy_config()
    network = build_network(config)
    world = ToyWorld(config=config, network=network)

    stock = {
        "minecraft:cobblestone": 16 * STACK_SIZE,
        "minecraft:dirt": 6 * STACK_SIZE,
        "minecraft:gravel": 8 * STACK_SIZE,
        "minecraft:sand": 10 * STACK_SIZE,
        "minecraft:soul_sand": 4 * STACK_SIZE,
    }
    for item_id, count in stock.items():
        world.source.insert(item_id, count)

    return world
