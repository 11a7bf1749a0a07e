"""
Tasks, task registry and the factory controller.

A Task wraps one scheduling policy behind a common lifecycle:
- init(context, config) -> Result[state]
- execute(state, inventory) -> Result[TaskExecution]
- diagnostics(config) -> list[DiagnosticSection]

TaskRegistry runs the registered tasks in order once per cycle. Each task is
isolated: a task that returns a failure or raises is logged and the others
still run.

FactoryController owns the container handles for one FactoryConfig and runs
a full tick: processing phase, one source scan, then every task against that
snapshot.
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from .containers import SafeContainer, Transport, wrap_container
from .errors import ErrorKind, Result
from .inventory import scan_inventory
from .metrics import CycleMetrics, compute_cycle_metrics
from .models import (
    DistributionConfig,
    FactoryConfig,
    InventorySnapshot,
    ProcessingTransfer,
    ProductionConfig,
    RunResult,
)
from .orchestrator import Orchestrator
from .processing import ProcessingEngine
from .schedulers import StockBasedScheduler, WeightedScheduler

C = TypeVar("C")
S = TypeVar("S")


# =============================================================================
# TASK STATE
# =============================================================================

class MachineStatus(BaseModel):
    """What a task knows about one machine after its last cycle."""
    is_empty: bool = False
    last_material: Optional[str] = None
    last_transfer_time: Optional[float] = None
    last_count: Optional[int] = None


class DistributionState(BaseModel):
    machine_status: dict[str, MachineStatus] = Field(default_factory=dict)
    total_transfers: int = 0


class ProductionState(BaseModel):
    total_operations: int = 0
    total_transferred: int = 0
    last_processing_time: Optional[float] = None
    machine_status: dict[str, MachineStatus] = Field(default_factory=dict)


class TaskExecution(BaseModel, Generic[S]):
    """Outcome of one task cycle."""
    state: S
    operations_count: int = 0
    summary: Optional[str] = None
    run_result: Optional[RunResult] = None


class DiagnosticSection(BaseModel):
    title: str
    lines: list[str] = Field(default_factory=list)


@dataclass
class TaskContext:
    """Everything a task needs from the controller."""
    source: SafeContainer
    machine_containers: dict[str, SafeContainer]
    logger: logging.Logger
    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], float] = time.time


# =============================================================================
# TASKS
# =============================================================================

class Task(ABC, Generic[C, S]):
    """A unit of work the registry runs once per cycle."""

    id: str = ""
    name: str = ""

    @abstractmethod
    def init(self, context: TaskContext, config: C) -> Result[S]:
        """Prepare the task and return its initial state."""

    @abstractmethod
    def execute(self, state: S, inventory: Optional[InventorySnapshot]) -> Result[TaskExecution[S]]:
        """Run one cycle against a source snapshot (None means scan it yourself)."""

    def diagnostics(self, config: C) -> list[DiagnosticSection]:
        return []


class DistributionTask(Task[DistributionConfig, DistributionState]):
    """Distributes materials to machines by weighted random choice."""

    id = "distribution"
    name = "Material Distribution"

    def init(self, context: TaskContext, config: DistributionConfig) -> Result[DistributionState]:
        self.config = config
        self.context = context
        scheduler = WeightedScheduler(
            config.materials,
            config.machine_types,
            config.transfer_amount,
            rng=context.rng,
            logger=context.logger,
        )
        self.orchestrator = Orchestrator(scheduler, logger=context.logger)
        return Result.success(
            DistributionState(machine_status={m.id: MachineStatus() for m in config.machines})
        )

    def execute(
        self,
        state: DistributionState,
        inventory: Optional[InventorySnapshot],
    ) -> Result[TaskExecution[DistributionState]]:
        run_res = self.orchestrator.run(
            self.config.machines,
            self.context.machine_containers,
            self.context.source,
            pre_scanned=inventory,
        )
        if not run_res.ok:
            return Result.failure(run_res.kind, run_res.error.message)
        run_result = run_res.value

        machine_status = {k: v.model_copy() for k, v in state.machine_status.items()}
        for machine_state in run_result.machine_states:
            status = machine_status.setdefault(machine_state.id, MachineStatus())
            status.is_empty = machine_state.is_empty

        now = self.context.clock()
        for transfer in run_result.transfers:
            machine_status[transfer.machine_id] = MachineStatus(
                is_empty=False,
                last_material=transfer.item_id,
                last_transfer_time=now,
                last_count=transfer.items_transferred,
            )

        count = len(run_result.transfers)
        return Result.success(
            TaskExecution(
                state=DistributionState(
                    machine_status=machine_status,
                    total_transfers=state.total_transfers + count,
                ),
                operations_count=count,
                summary=f"{count} transfers to machines" if count else None,
                run_result=run_result,
            )
        )

    def diagnostics(self, config: DistributionConfig) -> list[DiagnosticSection]:
        return [
            DiagnosticSection(
                title="MATERIALS",
                lines=[
                    f"{m.id}: {m.item_id} (min: {m.min_stock}, weight: {m.weight})"
                    for m in config.materials.values()
                ],
            ),
            DiagnosticSection(
                title="MACHINE TYPES",
                lines=[f"{t.id}: {', '.join(t.supported_materials)}" for t in config.machine_types.values()],
            ),
            DiagnosticSection(
                title="MACHINES",
                lines=[f"{m.id}: type={m.type}, container={m.input_container}" for m in config.machines],
            ),
        ]


class ProductionTask(Task[ProductionConfig, ProductionState]):
    """Feeds production machines the most urgent recipe input."""

    id = "production"
    name = "Material Production"

    def init(self, context: TaskContext, config: ProductionConfig) -> Result[ProductionState]:
        self.config = config
        self.context = context
        scheduler = StockBasedScheduler(
            config.recipes,
            config.stock_targets,
            config.transfer_amount,
            logger=context.logger,
        )
        self.orchestrator = Orchestrator(scheduler, logger=context.logger)
        return Result.success(ProductionState())

    def execute(
        self,
        state: ProductionState,
        inventory: Optional[InventorySnapshot],
    ) -> Result[TaskExecution[ProductionState]]:
        run_res = self.orchestrator.run(
            self.config.machines,
            self.context.machine_containers,
            self.context.source,
            pre_scanned=inventory,
        )
        if not run_res.ok:
            return Result.failure(run_res.kind, run_res.error.message)
        run_result = run_res.value

        # rebuilt from this cycle's scan; transfers override the pre-transfer view
        machine_status = {
            ms.id: MachineStatus(is_empty=ms.is_empty) for ms in run_result.machine_states
        }
        now = self.context.clock()
        for transfer in run_result.transfers:
            status = machine_status.setdefault(transfer.machine_id, MachineStatus())
            status.is_empty = False
            status.last_material = transfer.item_id
            status.last_count = transfer.items_transferred
            status.last_transfer_time = now

        operations = len(run_result.transfers)
        transferred = sum(t.items_transferred for t in run_result.transfers)
        return Result.success(
            TaskExecution(
                state=ProductionState(
                    total_operations=state.total_operations + operations,
                    total_transferred=state.total_transferred + transferred,
                    last_processing_time=now if operations else state.last_processing_time,
                    machine_status=machine_status,
                ),
                operations_count=operations,
                summary=f"Processed {operations} machine assignments" if operations else None,
                run_result=run_result,
            )
        )

    def diagnostics(self, config: ProductionConfig) -> list[DiagnosticSection]:
        recipe_lines = [
            f"[{machine_type}] {recipe.input} -> {recipe.output}"
            for machine_type, recipes in config.recipes.items()
            for recipe in recipes
        ]
        return [
            DiagnosticSection(title="PRODUCTION RECIPES", lines=recipe_lines),
            DiagnosticSection(
                title="STOCK TARGETS",
                lines=[
                    f"{t.item_id}: target={t.target_count}, weight={t.weight}"
                    for t in config.stock_targets
                ],
            ),
            DiagnosticSection(
                title="MACHINES",
                lines=[f"{m.id}: type={m.type}, container={m.input_container}" for m in config.machines],
            ),
        ]


# =============================================================================
# REGISTRY
# =============================================================================

@dataclass
class RegisteredTask:
    task: Task
    config: Any
    state: Any = None
    enabled: bool = True


class TaskRegistry:
    """Runs tasks in registration order, isolating each one."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)
        self.tasks: list[RegisteredTask] = []

    def register(self, task: Task, config: Any) -> None:
        self.tasks.append(RegisteredTask(task=task, config=config))
        self.logger.info("task registered: id=%s name=%s", task.id, task.name)

    def init(self, context: TaskContext) -> None:
        """Initialize every task; a task whose init fails or raises is disabled."""
        for entry in self.tasks:
            try:
                result = entry.task.init(context, entry.config)
            except Exception:
                self.logger.exception("task init crashed: id=%s", entry.task.id)
                entry.enabled = False
                continue

            if not result.ok:
                self.logger.error("task init failed: id=%s kind=%s", entry.task.id, result.kind.value)
                entry.enabled = False
                continue

            entry.state = result.value
            self.logger.info("task initialized: id=%s", entry.task.id)

    def run_cycle(self, inventory: Optional[InventorySnapshot]) -> dict[str, TaskExecution]:
        """
        Run every enabled task once.

        Each task sees the snapshot minus what earlier tasks moved this cycle.
        The snapshot passed in is not modified.

        Returns:
            Task id -> TaskExecution for the tasks that completed
        """
        executions: dict[str, TaskExecution] = {}
        remaining = inventory.planning_copy() if inventory is not None else None

        for entry in self.tasks:
            if not entry.enabled:
                continue

            try:
                result = entry.task.execute(entry.state, remaining)
            except Exception:
                self.logger.exception("task crashed: id=%s", entry.task.id)
                continue

            if not result.ok:
                self.logger.warning("task execution failed: id=%s kind=%s", entry.task.id, result.kind.value)
                continue

            entry.state = result.value.state
            executions[entry.task.id] = result.value

            run_result = result.value.run_result
            if remaining is not None and run_result is not None:
                for transfer in run_result.transfers:
                    remaining.consume(transfer.item_id, transfer.source_slot, transfer.items_transferred)

            if result.value.operations_count > 0:
                self.logger.info(
                    "task completed: id=%s operations=%d summary=%s",
                    entry.task.id,
                    result.value.operations_count,
                    result.value.summary,
                )

        return executions

    def task_states(self) -> dict[str, Any]:
        return {
            entry.task.id: entry.state
            for entry in self.tasks
            if entry.enabled and entry.state is not None
        }

    def task_count(self) -> int:
        return len(self.tasks)

    def enabled_count(self) -> int:
        return sum(1 for entry in self.tasks if entry.enabled)

    def diagnostics(self) -> list[DiagnosticSection]:
        sections: list[DiagnosticSection] = []
        for entry in self.tasks:
            sections.extend(entry.task.diagnostics(entry.config))
        return sections


# =============================================================================
# CONTROLLER
# =============================================================================

class TickReport(BaseModel):
    """What happened during one controller tick."""
    tick: int
    processing: list[ProcessingTransfer] = Field(default_factory=list)
    operations: dict[str, int] = Field(default_factory=dict)
    source_scanned: bool = False
    metrics: CycleMetrics = Field(default_factory=CycleMetrics)


class FactoryController:
    """
    Runs the factory against a transport.

    start() validates containers once and initializes the tasks; run_tick()
    then performs one full replenishment cycle.
    """

    def __init__(
        self,
        config: FactoryConfig,
        transport: Transport,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ):
        self.config = config
        self.transport = transport
        self.rng = rng or random.Random()
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

        self.registry = TaskRegistry(logger=self.logger)
        self.processing = ProcessingEngine(logger=self.logger)
        self.source: Optional[SafeContainer] = None
        self.processing_container: Optional[SafeContainer] = None
        self.machine_containers: dict[str, SafeContainer] = {}
        self.tick_count = 0
        self.last_report: Optional[TickReport] = None

    def start(self) -> Result[None]:
        """
        Validate containers and initialize tasks.

        Returns:
            Failure only when the source container cannot be used
        """
        source_res = wrap_container(self.transport, self.config.source_container, logger=self.logger)
        if not source_res.ok:
            self.logger.error(
                "source container unavailable: name=%s kind=%s",
                self.config.source_container,
                source_res.kind.value,
            )
            return Result.failure(source_res.kind, source_res.error.message, **source_res.error.context)
        self.source = source_res.value

        self._connect_missing()

        context = TaskContext(
            source=self.source,
            machine_containers=self.machine_containers,
            logger=self.logger,
            rng=self.rng,
            clock=self.clock,
        )
        if self.config.distribution and self.config.distribution.enabled:
            self.registry.register(DistributionTask(), self.config.distribution)
        if self.config.production and self.config.production.enabled:
            self.registry.register(ProductionTask(), self.config.production)
        self.registry.init(context)

        self.logger.info(
            "controller started: machines=%d containers=%d tasks=%d",
            len(self.config.all_machines()),
            len(self.machine_containers),
            self.registry.enabled_count(),
        )
        return Result.success(None)

    def _connect_missing(self) -> None:
        """Wrap any configured container that is not wrapped yet."""
        name = self.config.processing_container
        if name and self.processing_container is None:
            res = wrap_container(self.transport, name, logger=self.logger)
            if res.ok:
                self.processing_container = res.value
            else:
                self.logger.warning("processing container unavailable: name=%s kind=%s", name, res.kind.value)

        for machine in self.config.all_machines():
            name = machine.input_container
            if name in self.machine_containers:
                continue
            res = wrap_container(self.transport, name, logger=self.logger)
            if res.ok:
                self.machine_containers[name] = res.value
            else:
                self.logger.warning(
                    "machine container unavailable: machine=%s container=%s kind=%s",
                    machine.id,
                    name,
                    res.kind.value,
                )

    def run_tick(self) -> TickReport:
        """Processing phase, one source scan, then every task against that snapshot."""
        if self.source is None:
            raise RuntimeError("FactoryController.start() must succeed before run_tick()")

        self.tick_count += 1
        self._connect_missing()

        processing_res = self.processing.run_phase(
            self.config.processing,
            self.source,
            self.processing_container,
        )
        processing = processing_res.value if processing_res.ok else []

        inventory_res = scan_inventory(self.source)
        inventory = inventory_res.value if inventory_res.ok else None
        if inventory is None:
            self.logger.warning("source scan failed, tasks will rescan: source=%s", self.source.name)

        executions = self.registry.run_cycle(inventory)

        metrics = compute_cycle_metrics(processing=processing)
        for execution in executions.values():
            metrics = metrics.merge(compute_cycle_metrics(run_result=execution.run_result))

        report = TickReport(
            tick=self.tick_count,
            processing=processing,
            operations={task_id: e.operations_count for task_id, e in executions.items()},
            source_scanned=inventory is not None,
            metrics=metrics,
        )
        self.last_report = report
        self.logger.debug(
            "tick complete: tick=%d transfers=%d items=%d",
            report.tick,
            metrics.transfers,
            metrics.items_moved,
        )
        return report

    def source_inventory(self) -> Result[InventorySnapshot]:
        if self.source is None:
            return Result.failure(ErrorKind.CONTAINER_MISSING, "Controller not started")
        return scan_inventory(self.source)
