from __future__ import annotations

import asyncio

from conftest import make_item
from resolution_lab.application.orchestrator import ResolutionOrchestrator
from resolution_lab.application.store import ResolutionStateStore
from resolution_lab.domain import PathState, ProcessingMode
from resolution_lab.workers.scheduler import QueueScheduler


class RecordingOrchestrator:
    """Stands in for the orchestrator and records when each resolution runs."""

    def __init__(self, store: ResolutionStateStore, on_begin=None) -> None:
        self.store = store
        self.timeline: list[tuple[str, str]] = []
        self.on_begin = on_begin

    async def resolve(self, item, mode):
        self.timeline.append(("begin", item.id))
        if self.on_begin is not None:
            self.on_begin(item)
        await asyncio.sleep(0.01)
        self.timeline.append(("end", item.id))


def test_drains_fifo_one_item_at_a_time():
    store = ResolutionStateStore(ProcessingMode.BOTH)
    orchestrator = RecordingOrchestrator(store)
    scheduler = QueueScheduler(store, orchestrator, inter_item_delay=0)
    scheduler.enqueue([make_item("I1"), make_item("I2"), make_item("I3")])

    async def scenario():
        assert scheduler.start() is True
        assert scheduler.is_draining
        await scheduler.wait_idle()

    asyncio.run(scenario())

    assert [record.id for record in store.history] == ["I1", "I2", "I3"]
    assert orchestrator.timeline == [
        ("begin", "I1"), ("end", "I1"),
        ("begin", "I2"), ("end", "I2"),
        ("begin", "I3"), ("end", "I3"),
    ]
    assert not scheduler.is_draining
    assert store.queue == []
    assert scheduler.status().processed == 3


def test_start_is_idempotent_and_noop_on_empty_queue():
    store = ResolutionStateStore()
    scheduler = QueueScheduler(store, RecordingOrchestrator(store), inter_item_delay=0)

    async def scenario():
        assert scheduler.start() is False
        scheduler.enqueue([make_item("I1")])
        assert scheduler.start() is True
        assert scheduler.start() is False
        await scheduler.wait_idle()

    asyncio.run(scenario())
    assert [record.id for record in store.history] == ["I1"]


def test_records_mark_only_selected_paths_running():
    store = ResolutionStateStore(ProcessingMode.FAST)
    snapshots = []
    orchestrator = RecordingOrchestrator(store, on_begin=lambda item: snapshots.append(store.get_record(item.id)))
    scheduler = QueueScheduler(store, orchestrator, inter_item_delay=0)
    scheduler.enqueue([make_item("I1")])

    async def scenario():
        scheduler.start()
        await scheduler.wait_idle()

    asyncio.run(scenario())

    assert snapshots[0].fast.state is PathState.RUNNING
    assert snapshots[0].deep.state is PathState.PENDING


def test_items_enqueued_while_draining_are_processed():
    store = ResolutionStateStore()
    scheduler = None

    def add_more(item):
        if item.id == "I1":
            scheduler.enqueue([make_item("I2")])

    orchestrator = RecordingOrchestrator(store, on_begin=add_more)
    scheduler = QueueScheduler(store, orchestrator, inter_item_delay=0)
    scheduler.enqueue([make_item("I1")])

    async def scenario():
        scheduler.start()
        await scheduler.wait_idle()

    asyncio.run(scenario())
    assert [record.id for record in store.history] == ["I1", "I2"]


def test_clearing_queue_mid_run_finishes_current_item_only():
    store = ResolutionStateStore()
    orchestrator = RecordingOrchestrator(store, on_begin=lambda item: store.clear_queue())
    scheduler = QueueScheduler(store, orchestrator, inter_item_delay=0)
    scheduler.enqueue([make_item("I1"), make_item("I2"), make_item("I3")])

    async def scenario():
        scheduler.start()
        await scheduler.wait_idle()

    asyncio.run(scenario())

    assert [record.id for record in store.history] == ["I1"]
    assert orchestrator.timeline == [("begin", "I1"), ("end", "I1")]
    assert not scheduler.is_draining


def test_full_pipeline_with_real_orchestrator(gateway):
    store = ResolutionStateStore(ProcessingMode.BOTH)
    orchestrator = ResolutionOrchestrator(store, gateway, path_timeout=5.0)
    scheduler = QueueScheduler(store, orchestrator, inter_item_delay=0.01)
    scheduler.enqueue([make_item("I1"), make_item("I2"), make_item("I3")])

    async def scenario():
        scheduler.start()
        await scheduler.wait_idle()
        await orchestrator.wait_side_tasks()

    asyncio.run(scenario())

    assert [record.id for record in store.history] == ["I1", "I2", "I3"]
    resolved = [item_id for name, item_id in gateway.calls if name == "fast"]
    assert resolved == ["I1", "I2", "I3"]
    synthesized = [item_id for name, item_id in gateway.calls if name == "synthesize"]
    assert synthesized == ["I1", "I2", "I3"]
    assert all(record.consolidated.state is PathState.COMPLETED for record in store.history)
