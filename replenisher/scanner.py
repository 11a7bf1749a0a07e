"""
Machine State Scanner

Determines, for every configured machine, whether its input container is
empty. A machine whose container is missing, unreachable or unreadable is
recorded as not empty so that nothing is pushed into a container we could
not confirm is empty. One bad machine never aborts the batch.
"""

import logging
from typing import Mapping

from .containers import SafeContainer
from .inventory import is_inventory_empty
from .models import MachineConfig, MachineState, ScanResult


def scan_machines(
    machines: list[MachineConfig],
    containers: Mapping[str, SafeContainer],
    logger: logging.Logger | None = None,
) -> ScanResult:
    """
    Scan every machine's input container.

    Args:
        machines: Machine configurations, scanned in order
        containers: Transport name -> SafeContainer for the input containers
        logger: Logger for per-machine problems

    Returns:
        ScanResult with one MachineState per machine, the ids of empty
        machines and the ids of machines whose container could not be checked
    """
    log = logger or logging.getLogger(__name__)
    result = ScanResult()

    for machine in machines:
        container = containers.get(machine.input_container)
        is_empty = False

        if container is None or not container.is_connected():
            log.warning(
                "machine container unreachable: machine=%s container=%s",
                machine.id,
                machine.input_container,
            )
            result.unreachable_ids.append(machine.id)
        else:
            empty_res = is_inventory_empty(container)
            if empty_res.ok:
                is_empty = empty_res.value
            else:
                log.warning(
                    "machine container read failed: machine=%s container=%s",
                    machine.id,
                    machine.input_container,
                )
                result.unreachable_ids.append(machine.id)

        result.results.append(
            MachineState(
                id=machine.id,
                type=machine.type,
                input_container=machine.input_container,
                is_empty=is_empty,
            )
        )
        if is_empty:
            result.empty_ids.append(machine.id)

    return result
