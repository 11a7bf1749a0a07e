"""
Scheduler Policies

A Scheduler maps (machine states, inventory snapshot) to a list of
Assignments. Two policies are provided:

- WeightedScheduler: weighted random choice among the materials a machine
  type supports, respecting per-material minimum stock (distribution).
- StockBasedScheduler: picks the recipe whose output is furthest below its
  stock target, scaled by target weight (production).

Schedulers never mutate the snapshot they are given. Each schedule() call
works on a planning copy and consumes from it as it assigns, so a machine
scheduled later in the same pass only sees what earlier assignments left.
"""

import logging
import random
from abc import ABC, abstractmethod
from typing import Optional

from .errors import ErrorKind, Result
from .models import (
    Assignment,
    InventorySnapshot,
    MachineState,
    MachineTypeDefinition,
    MaterialDefinition,
    RecipeDefinition,
    StockTarget,
)


class Scheduler(ABC):
    """
    Decides what goes into which empty machine.

    Subclasses implement plan() for a single machine; schedule() runs it over
    every empty machine against one shared planning copy.
    """

    logger: logging.Logger

    def schedule(
        self,
        machines: list[MachineState],
        inventory: InventorySnapshot,
    ) -> list[Assignment]:
        """
        Create assignments for the empty machines.

        Args:
            machines: All scanned machines, including non-empty ones
            inventory: Snapshot of the source container (read-only)

        Returns:
            Assignments to execute, in machine order
        """
        assignments: list[Assignment] = []
        local_inventory = inventory.planning_copy()

        for machine in machines:
            if not machine.is_empty:
                continue

            plan_res = self.plan(machine, local_inventory)
            if not plan_res.ok:
                level = logging.DEBUG if plan_res.kind == ErrorKind.NO_CANDIDATE_AVAILABLE else logging.WARNING
                self.logger.log(
                    level,
                    "machine skipped: machine=%s type=%s kind=%s reason=%s",
                    machine.id,
                    machine.type,
                    plan_res.kind.value,
                    plan_res.error.message,
                )
                continue
            assignments.append(plan_res.value)

        return assignments

    @abstractmethod
    def plan(self, machine: MachineState, inventory: InventorySnapshot) -> Result[Assignment]:
        """Assignment for one empty machine; consumes what it assigns from `inventory`."""


def _assign(
    machine: MachineState,
    item_id: str,
    local_inventory: InventorySnapshot,
    amount: int,
) -> Optional[Assignment]:
    """Build an assignment from the best slot and consume it from the planning copy."""
    slot_info = local_inventory.pick_slot(item_id, amount)
    if slot_info is None:
        return None
    assignment = Assignment(
        machine_id=machine.id,
        target_container=machine.input_container,
        item_id=item_id,
        source_slot=slot_info.slot,
        amount=amount,
    )
    local_inventory.consume(item_id, slot_info.slot, amount)
    return assignment


# =============================================================================
# WEIGHTED RANDOM SELECTION
# =============================================================================

class WeightedScheduler(Scheduler):
    """
    Weighted random material selection for distribution.

    For each empty machine:
    1. Resolve the machine type and its supported materials (declared order)
    2. Keep materials whose stock covers min_stock + transfer_amount
    3. One candidate is taken directly; several are drawn by weight
    4. Assign from the chosen item's slot and consume it locally
    """

    def __init__(
        self,
        materials: dict[str, MaterialDefinition],
        machine_types: dict[str, MachineTypeDefinition],
        transfer_amount: int,
        rng: random.Random | None = None,
        logger: logging.Logger | None = None,
    ):
        self.materials = materials
        self.machine_types = machine_types
        self.transfer_amount = transfer_amount
        self.rng = rng or random.Random()
        self.logger = logger or logging.getLogger(__name__)

    def plan(self, machine: MachineState, inventory: InventorySnapshot) -> Result[Assignment]:
        """Choose a material for one machine and consume it from `inventory`."""
        machine_type = self.machine_types.get(machine.type)
        if machine_type is None:
            return Result.failure(ErrorKind.UNKNOWN_TYPE, "Unknown machine type", machine=machine.id, type=machine.type)

        known = [m for m in machine_type.supported_materials if m in self.materials]
        if machine_type.supported_materials and not known:
            return Result.failure(
                ErrorKind.UNKNOWN_MATERIAL,
                "No supported material is defined",
                machine=machine.id,
                type=machine.type,
            )

        candidates = self.available_materials(machine_type, inventory)
        if not candidates:
            return Result.failure(ErrorKind.NO_CANDIDATE_AVAILABLE, "No material has enough stock", machine=machine.id)

        selected = self.weighted_select(candidates)
        if selected is None:
            return Result.failure(ErrorKind.NO_CANDIDATE_AVAILABLE, "Every candidate has zero weight", machine=machine.id)

        assignment = _assign(machine, selected.item_id, inventory, self.transfer_amount)
        if assignment is None:
            return Result.failure(ErrorKind.NO_CANDIDATE_AVAILABLE, "Selected material has no slot", machine=machine.id)

        self.logger.debug(
            "assigned material: machine=%s material=%s slot=%d",
            machine.id,
            selected.id,
            assignment.source_slot,
        )
        return Result.success(assignment)

    def available_materials(
        self,
        machine_type: MachineTypeDefinition,
        inventory: InventorySnapshot,
    ) -> list[MaterialDefinition]:
        """Supported materials with enough stock, in declared order."""
        available: list[MaterialDefinition] = []

        for material_id in machine_type.supported_materials:
            material = self.materials.get(material_id)
            if material is None:
                self.logger.warning(
                    "unknown material in machine type: type=%s material=%s",
                    machine_type.id,
                    material_id,
                )
                continue

            required = material.min_stock + self.transfer_amount
            have = inventory.total(material.item_id)
            if have < required:
                self.logger.debug(
                    "insufficient stock: material=%s have=%d required=%d",
                    material_id,
                    have,
                    required,
                )
                continue

            available.append(material)

        return available

    def weighted_select(self, candidates: list[MaterialDefinition]) -> Optional[MaterialDefinition]:
        """
        Pick one candidate with probability proportional to its weight.

        A single candidate is returned without drawing, whatever its weight.
        Zero-weight candidates can never be hit by the draw; if every weight
        is zero there is nothing to draw from and None is returned.
        """
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        total_weight = sum(c.weight for c in candidates)
        if total_weight <= 0:
            return None

        draw = self.rng.random() * total_weight
        cumulative = 0.0
        for candidate in candidates:
            cumulative += candidate.weight
            if draw < cumulative:
                return candidate

        # float accumulation can leave draw == cumulative at the very end
        return [c for c in candidates if c.weight > 0][-1]


# =============================================================================
# URGENCY-PROPORTIONAL SELECTION
# =============================================================================

class StockBasedScheduler(Scheduler):
    """
    Urgency-based recipe selection for production.

    urgency = max(0, (target - current) / target) * weight, computed on the
    output of each recipe. Machines get the most urgent recipe whose input
    can be spared (stock >= input min_reserve + transfer_amount).
    """

    def __init__(
        self,
        recipes: dict[str, list[RecipeDefinition]],
        stock_targets: list[StockTarget],
        transfer_amount: int,
        logger: logging.Logger | None = None,
    ):
        self.recipes = recipes
        self.stock_targets = {t.item_id: t for t in stock_targets}
        self.transfer_amount = transfer_amount
        self.logger = logger or logging.getLogger(__name__)

    def plan(self, machine: MachineState, inventory: InventorySnapshot) -> Result[Assignment]:
        """Choose the most urgent viable recipe for one machine and consume its input."""
        recipes = self.recipes.get(machine.type)
        if not recipes:
            return Result.failure(ErrorKind.UNKNOWN_TYPE, "No recipes for machine type", machine=machine.id, type=machine.type)

        scored = self.score_recipes(recipes, inventory)
        # most urgent first; output id breaks ties deterministically
        scored.sort(key=lambda pair: (-pair[1], pair[0].output))

        for recipe, urgency in scored:
            if urgency <= 0:
                continue
            if inventory.total(recipe.input) < self.required_input(recipe.input):
                continue

            assignment = _assign(machine, recipe.input, inventory, self.transfer_amount)
            if assignment is None:
                continue

            self.logger.debug(
                "assigned recipe: machine=%s input=%s output=%s urgency=%.3f",
                machine.id,
                recipe.input,
                recipe.output,
                urgency,
            )
            return Result.success(assignment)

        return Result.failure(ErrorKind.NO_CANDIDATE_AVAILABLE, "No viable recipe", machine=machine.id)

    def required_input(self, item_id: str) -> int:
        """Input stock needed before one transfer may be taken."""
        target = self.stock_targets.get(item_id)
        reserve = target.min_reserve if target and target.min_reserve is not None else 0
        return reserve + self.transfer_amount

    def urgency(self, item_id: str, inventory: InventorySnapshot) -> float:
        """How far `item_id` is below its stock target, scaled by weight."""
        target = self.stock_targets.get(item_id)
        if target is None:
            return 0.0
        current = inventory.total(item_id)
        return max(0.0, (target.target_count - current) / target.target_count) * target.weight

    def score_recipes(
        self,
        recipes: list[RecipeDefinition],
        inventory: InventorySnapshot,
    ) -> list[tuple[RecipeDefinition, float]]:
        scored: list[tuple[RecipeDefinition, float]] = []
        for recipe in recipes:
            if recipe.output not in self.stock_targets:
                self.logger.warning("recipe output has no stock target: output=%s", recipe.output)
            scored.append((recipe, self.urgency(recipe.output, inventory)))
        return scored
