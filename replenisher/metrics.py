"""
Metrics Computation Module

Computes aggregate metrics for one replenishment cycle.

- CycleMetrics: aggregated counters for a cycle
- compute_cycle_metrics(run_result, processing) -> CycleMetrics: pure function

Metrics computed:
- machines / empty_machines: from the cycle's machine scan
- transfers / items_moved: orchestrator plus processing transfers
- items_by_item: items moved per item id
"""

from collections import defaultdict
from typing import Optional

from pydantic import BaseModel, Field

from .models import ProcessingTransfer, RunResult


class CycleMetrics(BaseModel):
    """Aggregated counters for one cycle."""
    machines: int = 0
    empty_machines: int = 0
    transfers: int = 0
    items_moved: int = 0
    items_by_item: dict[str, int] = Field(default_factory=dict)

    def merge(self, other: "CycleMetrics") -> "CycleMetrics":
        """Sum of two metric sets; neither input is modified."""
        items = dict(self.items_by_item)
        for item_id, count in other.items_by_item.items():
            items[item_id] = items.get(item_id, 0) + count
        return CycleMetrics(
            machines=self.machines + other.machines,
            empty_machines=self.empty_machines + other.empty_machines,
            transfers=self.transfers + other.transfers,
            items_moved=self.items_moved + other.items_moved,
            items_by_item=items,
        )


def compute_cycle_metrics(
    run_result: Optional[RunResult] = None,
    processing: Optional[list[ProcessingTransfer]] = None,
) -> CycleMetrics:
    """
    Compute aggregate metrics for a cycle.

    Pure function: does not mutate inputs, no I/O.

    Args:
        run_result: Orchestrator output for the cycle, if any
        processing: Processing transfers for the cycle, if any

    Returns:
        CycleMetrics
    """
    items_by_item: dict[str, int] = defaultdict(int)
    machines = 0
    empty_machines = 0
    transfers = 0

    if run_result is not None:
        machines = len(run_result.machine_states)
        empty_machines = sum(1 for m in run_result.machine_states if m.is_empty)
        for transfer in run_result.transfers:
            items_by_item[transfer.item_id] += transfer.items_transferred
        transfers += len(run_result.transfers)

    for transfer in processing or []:
        items_by_item[transfer.input_item_id] += transfer.items_transferred
        transfers += 1

    return CycleMetrics(
        machines=machines,
        empty_machines=empty_machines,
        transfers=transfers,
        items_moved=sum(items_by_item.values()),
        items_by_item=dict(items_by_item),
    )
