"""Tests for snapshot assembly and per-step fault isolation."""

from datetime import datetime

import pytest

from flashforge_relay.adapters import Command, FailureKind, TransactionClient
from flashforge_relay.core import Step
from flashforge_relay.telemetry import SnapshotAssembler

from conftest import FakeTransactionClient

EXPECTED_ORDER = ["~M601 S1", "~M115", "~M114", "~M105", "~M27", "~M119"]


@pytest.mark.asyncio
async def test_assemble_runs_steps_in_order(fake_client):
    snapshot = await SnapshotAssembler(fake_client).assemble("10.0.0.5")

    assert fake_client.commands() == EXPECTED_ORDER
    assert {address for address, _ in fake_client.calls} == {"10.0.0.5"}
    assert snapshot.errors == ()
    assert snapshot.info.machine_name == "Workshop"
    assert snapshot.head_position.x == 10.5
    assert snapshot.temperatures.tool0.current == 210.0
    assert snapshot.progress.percentage == 25
    assert snapshot.status.machine_status == "BUILDING_FROM_SD"
    assert isinstance(snapshot.timestamp, datetime)
    assert snapshot.timestamp.tzinfo is not None


@pytest.mark.asyncio
async def test_assemble_is_fully_shaped_when_every_step_fails():
    client = FakeTransactionClient()
    for command in Command:
        client.fail(command, "connect ECONNREFUSED", FailureKind.NETWORK)

    snapshot = await SnapshotAssembler(client).assemble("10.0.0.5")
    payload = snapshot.as_dict()

    assert client.commands() == EXPECTED_ORDER
    assert [error.step for error in snapshot.errors] == [
        Step.CONTROL,
        Step.INFO,
        Step.HEAD_POSITION,
        Step.TEMPERATURE,
        Step.PROGRESS,
        Step.STATUS,
    ]
    assert all(error.error == "connect ECONNREFUSED" for error in snapshot.errors)
    assert payload["timestamp"]
    assert payload["info"]["machineName"] is None
    assert payload["info"]["buildVolume"] == {"x": None, "y": None, "z": None}
    assert payload["headPosition"] == {"x": None, "y": None, "z": None}
    assert payload["temperatures"]["bed"] == {"current": None, "target": None}
    assert payload["progress"] == {
        "bytesPrinted": 0,
        "bytesTotal": 0,
        "percentage": 0,
        "layerCurrent": None,
        "layerTotal": None,
    }
    assert payload["status"]["led"] is None
    assert payload["errors"][0] == {"step": "control", "error": "connect ECONNREFUSED"}


@pytest.mark.asyncio
async def test_temperature_failure_only_affects_temperatures(fake_client):
    fake_client.fail(Command.TEMPERATURE)

    snapshot = await SnapshotAssembler(fake_client).assemble("10.0.0.5")

    assert len(snapshot.errors) == 1
    assert snapshot.errors[0].step is Step.TEMPERATURE
    assert snapshot.errors[0].error == "Connection timeout"
    for pair in (
        snapshot.temperatures.tool0,
        snapshot.temperatures.tool1,
        snapshot.temperatures.bed,
    ):
        assert pair.current is None and pair.target is None
    assert snapshot.info.firmware == "v2.2.3"
    assert snapshot.progress.bytes_total == 200
    assert snapshot.status.led == 1


@pytest.mark.asyncio
async def test_unlock_failure_does_not_gate_later_steps(fake_client):
    fake_client.fail(Command.CONTROL, "Connection timeout")

    snapshot = await SnapshotAssembler(fake_client).assemble("10.0.0.5")

    assert snapshot.failed_steps == (Step.CONTROL,)
    assert fake_client.commands() == EXPECTED_ORDER
    assert snapshot.head_position.z == 0.2


@pytest.mark.asyncio
async def test_raising_executor_is_recorded_not_raised():
    class ExplodingClient(FakeTransactionClient):
        async def execute(self, address, command, timeout=None):
            if command is Command.HEAD_POSITION:
                raise RuntimeError("socket exploded")
            return await super().execute(address, command, timeout)

    snapshot = await SnapshotAssembler(ExplodingClient()).assemble("10.0.0.5")

    assert snapshot.failed_steps == (Step.HEAD_POSITION,)
    assert snapshot.errors[0].error == "socket exploded"
    assert snapshot.temperatures.bed.current == 60.0


@pytest.mark.asyncio
async def test_snapshots_are_not_cached(fake_client):
    assembler = SnapshotAssembler(fake_client)

    first = await assembler.assemble("10.0.0.5")
    fake_client.replies["~M105"] = "T0:100/200 B:50/60\r\nok\r\n"
    second = await assembler.assemble("10.0.0.5")

    assert first is not second
    assert first.temperatures.tool0.current == 210.0
    assert second.temperatures.tool0.current == 100.0
    assert len(fake_client.calls) == 12


@pytest.mark.asyncio
async def test_query_unlocks_then_reads_one_category(fake_client):
    outcome = await SnapshotAssembler(fake_client).query("10.0.0.5", Step.TEMPERATURE)

    assert fake_client.commands() == ["~M601 S1", "~M105"]
    assert outcome.ok
    assert outcome.section.tool0.target == 215.0


@pytest.mark.asyncio
async def test_query_reports_step_failure(fake_client):
    fake_client.fail(Command.PROGRESS, "Connection timeout")

    outcome = await SnapshotAssembler(fake_client).query("10.0.0.5", Step.PROGRESS)

    assert not outcome.ok
    assert outcome.error.step is Step.PROGRESS
    assert outcome.section.percentage == 0


@pytest.mark.asyncio
async def test_query_rejects_control_step(fake_client):
    with pytest.raises(ValueError):
        await SnapshotAssembler(fake_client).query("10.0.0.5", Step.CONTROL)


@pytest.mark.asyncio
async def test_assemble_against_tcp_printer(fake_printer):
    fake_printer.silent.add("~M114")
    client = TransactionClient(port=fake_printer.port, timeout=0.2)

    snapshot = await SnapshotAssembler(client).assemble("127.0.0.1")

    assert fake_printer.received == EXPECTED_ORDER
    assert snapshot.failed_steps == (Step.HEAD_POSITION,)
    assert snapshot.info.serial_number == "SNADVA4123456"
    assert snapshot.progress.percentage == 25
