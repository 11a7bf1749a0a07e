"""
Tests for tasks.py - tasks, registry and controller.

Tests verify:
- DistributionTask and ProductionTask track machine status and totals
- The registry isolates failing and crashing tasks
- Later tasks see the snapshot minus earlier tasks' transfers
- FactoryController runs processing, distribution and production in one tick
- A missing source stops start(); missing machine chests do not
"""

import random
from unittest.mock import MagicMock

import pytest

from replenisher.errors import ErrorKind, Result
from replenisher.models import OrchestratorTransfer, RunResult
from replenisher.tasks import (
    DistributionState,
    DistributionTask,
    FactoryController,
    ProductionTask,
    TaskContext,
    TaskExecution,
    TaskRegistry,
)
from replenisher.world import build_toy_factory

from replenisher.tests.helpers import make_snapshot


def fake_task(task_id: str, execute=None, init=None) -> MagicMock:
    task = MagicMock()
    task.id = task_id
    task.name = task_id.title()
    task.init.side_effect = init or (lambda context, config: Result.success({"runs": 0}))
    task.execute.side_effect = execute or (
        lambda state, inventory: Result.success(TaskExecution(state={"runs": state["runs"] + 1}))
    )
    return task


@pytest.fixture
def world():
    return build_toy_factory()


@pytest.fixture
def controller(world):
    ctrl = FactoryController(world.config, world.network, rng=random.Random(5), clock=lambda: 1000.0)
    assert ctrl.start().ok
    return ctrl


class TestTaskRegistry:
    """Test registry lifecycle and isolation."""

    def test_crashing_task_does_not_stop_others(self):
        def explode(state, inventory):
            raise RuntimeError("boom")

        registry = TaskRegistry()
        registry.register(fake_task("first", execute=explode), None)
        registry.register(fake_task("second"), None)
        registry.init(MagicMock())

        executions = registry.run_cycle(None)

        assert list(executions) == ["second"]
        assert registry.task_states()["second"] == {"runs": 1}
        assert registry.task_states()["first"] == {"runs": 0}

    def test_failed_init_disables_task(self):
        def fail(context, config):
            return Result.failure(ErrorKind.CONFIG_INVALID, "bad config")

        def crash(context, config):
            raise ValueError("bad")

        registry = TaskRegistry()
        failing = fake_task("failing", init=fail)
        crashing = fake_task("crashing", init=crash)
        registry.register(failing, None)
        registry.register(crashing, None)
        registry.register(fake_task("ok"), None)
        registry.init(MagicMock())

        registry.run_cycle(None)

        assert registry.task_count() == 3
        assert registry.enabled_count() == 1
        failing.execute.assert_not_called()
        crashing.execute.assert_not_called()

    def test_failed_execution_keeps_previous_state(self):
        registry = TaskRegistry()
        registry.register(
            fake_task("flaky", execute=lambda s, i: Result.failure(ErrorKind.DISCONNECTED, "gone")),
            None,
        )
        registry.init(MagicMock())

        assert registry.run_cycle(None) == {}
        assert registry.task_states() == {"flaky": {"runs": 0}}

    def test_later_tasks_see_earlier_transfers(self):
        seen = []

        def take_sand(state, inventory):
            seen.append(inventory.total("minecraft:sand"))
            run_result = RunResult(transfers=[
                OrchestratorTransfer(machine_id="m1", item_id="minecraft:sand", items_transferred=64, source_slot=1)
            ])
            return Result.success(TaskExecution(state=state, operations_count=1, run_result=run_result))

        def record(state, inventory):
            seen.append(inventory.total("minecraft:sand"))
            return Result.success(TaskExecution(state=state))

        registry = TaskRegistry()
        registry.register(fake_task("first", execute=take_sand), None)
        registry.register(fake_task("second", execute=record), None)
        registry.init(MagicMock())
        inventory = make_snapshot({"minecraft:sand": [(1, 64), (2, 64)]})

        registry.run_cycle(inventory)

        assert seen == [128, 64]
        assert inventory.total("minecraft:sand") == 128


class TestDistributionTask:
    """Test DistributionTask state tracking."""

    def test_marks_filled_machines(self, world, controller):
        task = DistributionTask()
        context = TaskContext(
            source=controller.source,
            machine_containers=controller.machine_containers,
            logger=MagicMock(),
            rng=random.Random(0),
            clock=lambda: 42.0,
        )
        state = task.init(context, world.config.distribution).value
        assert set(state.machine_status) == {"unearther_1", "unearther_2", "unearther_3"}

        execution = task.execute(state, None).value

        assert execution.operations_count == 3
        assert execution.state.total_transfers == 3
        status = execution.state.machine_status["unearther_2"]
        assert status.is_empty is False
        assert status.last_material == "minecraft:soul_sand"
        assert status.last_transfer_time == 42.0

    def test_busy_machines_keep_last_material(self, world, controller):
        world.network.containers["chest_1"].put(1, "minecraft:soul_sand", 64)
        task = DistributionTask()
        context = TaskContext(
            source=controller.source,
            machine_containers=controller.machine_containers,
            logger=MagicMock(),
        )
        state = task.init(context, world.config.distribution).value
        state = DistributionState(
            machine_status={**state.machine_status},
            total_transfers=7,
        )
        state.machine_status["unearther_2"].last_material = "minecraft:soul_sand"

        execution = task.execute(state, None).value

        assert execution.state.total_transfers == 9
        assert execution.state.machine_status["unearther_2"].last_material == "minecraft:soul_sand"
        assert execution.state.machine_status["unearther_2"].is_empty is False


class TestProductionTask:
    """Test ProductionTask state tracking."""

    def test_counts_operations_and_items(self, world, controller):
        task = ProductionTask()
        context = TaskContext(
            source=controller.source,
            machine_containers=controller.machine_containers,
            logger=MagicMock(),
            clock=lambda: 7.0,
        )
        state = task.init(context, world.config.production).value

        execution = task.execute(state, None).value

        assert execution.operations_count == 1
        assert execution.state.total_operations == 1
        assert execution.state.total_transferred == 64
        assert execution.state.last_processing_time == 7.0
        assert execution.state.machine_status["hammer_1"].last_count == 64


class TestFactoryController:
    """Test full ticks over the toy world."""

    def test_first_tick_runs_every_phase(self, controller, world):
        report = controller.run_tick()

        assert report.tick == 1
        assert report.source_scanned
        assert [t.input_item_id for t in report.processing] == ["minecraft:sand"]
        assert report.operations == {"distribution": 3, "production": 1}
        assert report.metrics.transfers == 5
        assert report.metrics.items_moved == 5 * 64
        assert world.network.containers["chest_10"].count("minecraft:sand") == 64

    def test_full_machines_are_left_alone(self, controller, world):
        controller.run_tick()
        report = controller.run_tick()

        # machines still hold last tick's stack until the world acts
        assert report.operations == {"distribution": 0, "production": 0}

        world.tick()
        report = controller.run_tick()
        assert report.operations["distribution"] == 3

    def test_world_tick_returns_processed_output(self, controller, world):
        controller.run_tick()
        world.tick()

        assert world.source.count("exnihilo:dust") == 64
        assert world.network.containers["chest_10"].slots == {}
        assert sum(world.consumed.values()) == 4 * 64

    def test_missing_source_fails_start(self, world):
        world.network.detach(world.config.source_container)

        res = FactoryController(world.config, world.network).start()

        assert res.kind == ErrorKind.CONTAINER_MISSING

    def test_missing_machine_chest_is_picked_up_later(self, world):
        world.network.detach("chest_0")
        ctrl = FactoryController(world.config, world.network, rng=random.Random(1))
        assert ctrl.start().ok
        assert "chest_0" not in ctrl.machine_containers

        report = ctrl.run_tick()
        assert report.operations["distribution"] == 2

        world.network.attach("chest_0")
        ctrl.run_tick()
        assert "chest_0" in ctrl.machine_containers

    def test_run_tick_requires_start(self, world):
        with pytest.raises(RuntimeError):
            FactoryController(world.config, world.network).run_tick()
