from __future__ import annotations

import asyncio
import copy
import logging
from pathlib import Path
from typing import List, Sequence

import httpx
import pytest

from stockmeta.config import DEFAULT_CONFIG
from stockmeta.core.gemini import BatchRequest, BatchResult, GeminiConnector
from stockmeta.core.work_items import ItemStatus
from stockmeta.inputs import InputValidationError
from stockmeta.runtime import RunPhase, StockMetaRuntime

LOGGER = logging.getLogger("test")

PROMPTS = "\n".join(f"A lighthouse at dawn, view {index}" for index in range(7))
FILENAMES = "\n".join(f"lighthouse_{index}.jpg" for index in range(7))


class RecordingClient:
    model = "recording"

    def __init__(self, gate: asyncio.Event | None = None) -> None:
        self.gate = gate
        self.calls: List[List[str]] = []
        self.closed = False

    async def generate_batch(self, requests: Sequence[BatchRequest]) -> List[BatchResult]:
        self.calls.append([request.id for request in requests])
        if self.gate is not None:
            await self.gate.wait()
        return [
            BatchResult(
                id=request.id,
                title="Lighthouse beam sweeping across calm morning sea",
                keywords="lighthouse,sea,dawn",
                category="Travel",
            )
            for request in requests
        ]

    async def aclose(self) -> None:
        self.closed = True


def _config(**scheduler) -> dict:
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["scheduler"].update(scheduler)
    return config


def test_run_moves_through_phases_and_exports(tmp_path: Path) -> None:
    client = RecordingClient()
    runtime = StockMetaRuntime(_config(batch_size=3, max_concurrent_batches=2), LOGGER, client=client)
    assert runtime.phase is RunPhase.INPUT

    async def scenario():
        summary = await runtime.run(PROMPTS, FILENAMES)
        await runtime.aclose()
        return summary

    summary = asyncio.run(scenario())

    assert runtime.phase is RunPhase.REVIEW
    assert summary.completed == 7
    assert [len(call) for call in client.calls] == [3, 3, 1]
    assert runtime.progress() == 100.0
    assert client.closed

    completed = [item.id for item in runtime.store.items]
    runtime.bulk_update(completed[:2], "category", "Landscapes")
    runtime.update_item(completed[2], "title", 'Lighthouse, "at dawn"')
    path = runtime.export(tmp_path)

    lines = path.read_text(encoding="utf-8").split("\n")
    assert lines[0] == "Filename,Title,Keywords,Category"
    assert len(lines) == 8
    assert lines[1].endswith(",Landscapes")
    assert '"Lighthouse, ""at dawn"""' in lines[3]


def test_category_edits_must_use_the_fixed_enumeration() -> None:
    runtime = StockMetaRuntime(_config(), LOGGER, client=RecordingClient())
    items = runtime.start("a fox", "fox.jpg")

    with pytest.raises(ValueError):
        runtime.bulk_update([items[0].id], "category", "Wildlife")
    runtime.update_item(items[0].id, "category", "Animals")

    assert runtime.store.items[0].category == "Animals"
    assert runtime.store.items[0].status is ItemStatus.PENDING


def test_invalid_input_leaves_runtime_untouched() -> None:
    runtime = StockMetaRuntime(_config(), LOGGER, client=RecordingClient())

    with pytest.raises(InputValidationError):
        runtime.start("one\ntwo", "only.jpg")

    assert runtime.phase is RunPhase.INPUT
    assert len(runtime.store) == 0


def test_process_requires_a_started_run() -> None:
    runtime = StockMetaRuntime(_config(), LOGGER, client=RecordingClient())

    with pytest.raises(RuntimeError):
        asyncio.run(runtime.process())


def test_start_over_discards_in_flight_run() -> None:
    async def scenario():
        gate = asyncio.Event()
        runtime = StockMetaRuntime(_config(), LOGGER, client=RecordingClient(gate))
        runtime.start(PROMPTS, FILENAMES)
        processing = asyncio.create_task(runtime.process())
        for _ in range(5):
            await asyncio.sleep(0)
        runtime.start_over()
        await processing
        gate.set()
        await runtime.scheduler.drain()
        return runtime

    runtime = asyncio.run(scenario())

    assert runtime.phase is RunPhase.INPUT
    assert len(runtime.store) == 0
    assert runtime.progress() == 0.0


def test_missing_credential_marks_every_item_as_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never reached
        raise AssertionError("network must not be used without a credential")

    async def scenario():
        connector = GeminiConnector(
            base_url="https://gemini.test",
            model="gemini-test",
            api_key=None,
            timeout=5,
            logger=LOGGER,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        runtime = StockMetaRuntime(_config(), LOGGER, client=connector)
        summary = await runtime.run(PROMPTS, FILENAMES)
        await runtime.aclose()
        return runtime, summary

    runtime, summary = asyncio.run(scenario())

    assert runtime.phase is RunPhase.REVIEW
    assert summary.failed == 7
    assert {item.status for item in runtime.store.items} == {ItemStatus.ERROR}
    assert {item.error_message for item in runtime.store.items} == {"API key not found"}


def test_restart_mid_run_keeps_each_summary_to_its_own_items() -> None:
    async def scenario():
        gate = asyncio.Event()
        runtime = StockMetaRuntime(_config(), LOGGER, client=RecordingClient(gate))
        runtime.start(PROMPTS, FILENAMES)
        first = asyncio.create_task(runtime.process())
        for _ in range(5):
            await asyncio.sleep(0)
        runtime.start_over()
        runtime.start("a\nb\nc", "a.jpg\nb.jpg\nc.jpg")
        stopped = await first
        gate.set()
        second = await runtime.process()
        await runtime.aclose()
        return runtime, stopped, second

    runtime, stopped, second = asyncio.run(scenario())

    assert stopped.stopped
    assert (stopped.total, stopped.completed, stopped.failed) == (7, 0, 0)
    assert not second.stopped
    assert (second.total, second.completed) == (3, 3)
    assert runtime.metrics.summary()["batches"] == 1
    assert runtime.phase is RunPhase.REVIEW
    assert [item.filename for item in runtime.store.items] == ["a.jpg", "b.jpg", "c.jpg"]
