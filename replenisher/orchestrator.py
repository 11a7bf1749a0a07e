"""
Orchestrator module - one replenishment cycle.

Ties the pieces together:
1. Scan machines (which input containers are empty)
2. Snapshot the source container (or reuse a snapshot taken earlier this tick)
3. Ask the scheduler for assignments
4. Execute the assignments one by one against the live source

The orchestrator holds no business rules; every decision comes from the
Scheduler it was built with. Failures of single machines or single transfers
are logged and skipped so that each cycle makes whatever progress it can.
"""

import logging
from typing import Mapping, Optional

from .containers import SafeContainer
from .errors import Result
from .inventory import scan_inventory
from .models import (
    Assignment,
    InventorySnapshot,
    MachineConfig,
    OrchestratorTransfer,
    RunResult,
)
from .scanner import scan_machines
from .schedulers import Scheduler
from .transfer import execute_transfer


class Orchestrator:
    """Runs scan -> snapshot -> schedule -> transfer cycles for one scheduler."""

    def __init__(self, scheduler: Scheduler, logger: logging.Logger | None = None):
        self.scheduler = scheduler
        self.logger = logger or logging.getLogger(__name__)

    def run(
        self,
        machines: list[MachineConfig],
        containers: Mapping[str, SafeContainer],
        source: SafeContainer,
        pre_scanned: Optional[InventorySnapshot] = None,
    ) -> Result[RunResult]:
        """
        Run a complete orchestration cycle.

        Args:
            machines: Machine configurations
            containers: Transport name -> SafeContainer for machine input containers
            source: Central material source
            pre_scanned: Snapshot of `source` taken earlier in the same tick

        Returns:
            Result with the scanned machine states and the successful transfers
        """
        # 1. Scan machines
        scan = scan_machines(machines, containers, logger=self.logger)
        states = scan.results

        if scan.unreachable_ids:
            self.logger.warning("machines not checked: count=%d", len(scan.unreachable_ids))

        if not scan.empty_ids:
            self.logger.debug("no empty machines, skipping cycle")
            return Result.success(RunResult(machine_states=states))
        self.logger.debug("machines scanned: total=%d empty=%d", len(states), len(scan.empty_ids))

        # 2. Snapshot the source
        if pre_scanned is not None:
            inventory = pre_scanned
        else:
            inventory_res = scan_inventory(source)
            if not inventory_res.ok:
                self.logger.warning("source scan failed, no transfers this cycle: source=%s", source.name)
                return Result.success(RunResult(machine_states=states))
            inventory = inventory_res.value

        # 3. Schedule
        assignments = self.scheduler.schedule(states, inventory)
        if not assignments:
            self.logger.debug("scheduler returned no assignments")
            return Result.success(RunResult(machine_states=states))
        self.logger.debug("scheduler created assignments: count=%d", len(assignments))

        # 4. Execute
        transfers = self.execute_assignments(assignments, source)
        if transfers:
            self.logger.info("orchestrator cycle complete: transfers=%d", len(transfers))

        return Result.success(RunResult(machine_states=states, transfers=transfers))

    def execute_assignments(
        self,
        assignments: list[Assignment],
        source: SafeContainer,
    ) -> list[OrchestratorTransfer]:
        """Execute assignments sequentially; a failed one does not stop the rest."""
        transfers: list[OrchestratorTransfer] = []

        for assignment in assignments:
            transfer_res = execute_transfer(
                source,
                assignment.target_container,
                assignment.source_slot,
                assignment.item_id,
                assignment.amount,
                logger=self.logger,
            )

            if not transfer_res.ok:
                self.logger.warning(
                    "assignment transfer failed: machine=%s item=%s kind=%s",
                    assignment.machine_id,
                    assignment.item_id,
                    transfer_res.kind.value,
                )
                continue

            transfers.append(
                OrchestratorTransfer(
                    machine_id=assignment.machine_id,
                    item_id=assignment.item_id,
                    items_transferred=transfer_res.value.transferred,
                    source_slot=assignment.source_slot,
                )
            )

        return transfers
