"""
Invariant validation helpers.

These functions check properties of factory configs and scheduler output
without raising exceptions, returning a list of human-readable violation
messages instead.
"""

from collections import Counter

from .models import Assignment, FactoryConfig, InventorySnapshot


def check_config_invariants(config: FactoryConfig) -> list[str]:
    """
    Validate a FactoryConfig against structural invariants.

    Args:
        config: The factory configuration to validate.

    Returns:
        List of violation messages. Empty list means all invariants passed.
    """
    violations = []
    distribution = config.distribution
    production = config.production

    # Invariant 1: machine ids are unique across phases
    machines = []
    if distribution:
        machines.extend(distribution.machines)
    if production:
        machines.extend(production.machines)
    for machine_id, count in Counter(m.id for m in machines).items():
        if count > 1:
            violations.append(f"Machine id '{machine_id}' is declared {count} times")

    # Invariant 2: no two machines share an input container
    owners: dict[str, str] = {}
    for machine in machines:
        other = owners.setdefault(machine.input_container, machine.id)
        if other != machine.id:
            violations.append(
                f"Machines '{other}' and '{machine.id}' share input container "
                f"'{machine.input_container}'"
            )

    # Invariant 3: the source is not also a machine input or the processing container
    if config.source_container in owners:
        violations.append(
            f"Source container '{config.source_container}' is also the input of "
            f"machine '{owners[config.source_container]}'"
        )
    if config.processing_container and config.processing_container == config.source_container:
        violations.append("Processing container is the same as the source container")

    if distribution:
        # Invariant 4: distribution machine types resolve
        for machine in distribution.machines:
            if machine.type not in distribution.machine_types:
                violations.append(
                    f"Machine {machine.id}: type '{machine.type}' not in machine types "
                    f"{sorted(distribution.machine_types)}"
                )

        # Invariant 5: material and machine type keys match their ids
        for key, material in distribution.materials.items():
            if key != material.id:
                violations.append(f"Material key '{key}' does not match its id '{material.id}'")
        for key, machine_type in distribution.machine_types.items():
            if key != machine_type.id:
                violations.append(f"Machine type key '{key}' does not match its id '{machine_type.id}'")

        # Invariant 6: supported materials resolve
        for machine_type in distribution.machine_types.values():
            for material_id in machine_type.supported_materials:
                if material_id not in distribution.materials:
                    violations.append(
                        f"Machine type {machine_type.id}: material '{material_id}' is not defined"
                    )

    if production:
        # Invariant 7: production machines have recipes
        for machine in production.machines:
            if not production.recipes.get(machine.type):
                violations.append(f"Machine {machine.id}: no recipes for type '{machine.type}'")

        # Invariant 8: stock targets are unique per item
        for item_id, count in Counter(t.item_id for t in production.stock_targets).items():
            if count > 1:
                violations.append(f"Stock target for '{item_id}' is declared {count} times")

    # Invariant 9: processing needs a container when it has a chain
    processing = config.processing
    if processing and processing.enabled and processing.chain and not config.processing_container:
        violations.append("Processing is enabled but no processing container is configured")

    return violations


def check_assignment_conservation(
    assignments: list[Assignment],
    inventory: InventorySnapshot,
) -> list[str]:
    """
    Check that a batch of assignments never takes more than the snapshot holds.

    For every item the sum of assigned amounts must not exceed its total in
    `inventory`, and every assignment must name a slot that held the item.

    Args:
        assignments: Output of one Scheduler.schedule() call.
        inventory: The snapshot that call was given.

    Returns:
        List of violation messages. Empty list means conservation held.
    """
    violations = []

    assigned: Counter[str] = Counter()
    for assignment in assignments:
        assigned[assignment.item_id] += assignment.amount

        info = inventory.get(assignment.item_id)
        slots = {s.slot for s in info.slots} if info else set()
        if assignment.source_slot not in slots:
            violations.append(
                f"Assignment for {assignment.machine_id}: slot {assignment.source_slot} "
                f"did not hold '{assignment.item_id}'"
            )

    for item_id, amount in assigned.items():
        available = inventory.total(item_id)
        if amount > available:
            violations.append(
                f"Item '{item_id}': assigned {amount} but only {available} available"
            )

    machine_counts = Counter(a.machine_id for a in assignments)
    for machine_id, count in machine_counts.items():
        if count > 1:
            violations.append(f"Machine {machine_id} received {count} assignments in one pass")

    return violations
