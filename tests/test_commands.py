"""Tests for printer control actions."""

import math

import pytest

from flashforge_relay.adapters import Command, FailureKind
from flashforge_relay.commands import (
    PrinterCommandError,
    PrinterController,
    resolve_led_command,
)


@pytest.mark.parametrize(
    "action,expected",
    [
        ("pause", "~M25"),
        ("resume", "~M24"),
        ("cancel", "~M26"),
        ("home", "~G28"),
        (" Pause ", "~M25"),
    ],
)
@pytest.mark.asyncio
async def test_execute_action_unlocks_then_sends(fake_client, action, expected):
    controller = PrinterController(fake_client)

    outcome = await controller.execute_action("10.0.0.5", action)

    assert fake_client.commands() == ["~M601 S1", expected]
    assert outcome.as_dict() == {"success": True, "response": "ok"}


@pytest.mark.asyncio
async def test_execute_action_rejects_unknown_action(fake_client):
    controller = PrinterController(fake_client)

    with pytest.raises(ValueError):
        await controller.execute_action("10.0.0.5", "explode")

    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_action_failure_raises_command_error(fake_client):
    fake_client.fail(Command.CANCEL, "connect EHOSTUNREACH", FailureKind.NETWORK)
    controller = PrinterController(fake_client)

    with pytest.raises(PrinterCommandError) as excinfo:
        await controller.execute_action("10.0.0.5", "cancel")

    assert str(excinfo.value) == "connect EHOSTUNREACH"
    assert excinfo.value.action == "cancel"
    assert excinfo.value.failure is FailureKind.NETWORK


@pytest.mark.asyncio
async def test_unlock_failure_is_best_effort(fake_client):
    fake_client.fail(Command.CONTROL)
    controller = PrinterController(fake_client)

    outcome = await controller.execute_action("10.0.0.5", "home")

    assert outcome.action == "home"
    assert fake_client.commands() == ["~M601 S1", "~G28"]


@pytest.mark.asyncio
async def test_set_led_custom_colour_is_clamped(fake_client):
    controller = PrinterController(fake_client)

    await controller.set_led("10.0.0.5", red=300, green=-5, blue=10)

    assert fake_client.commands()[-1] == "~M146 r255 g0 b10"


def test_resolve_led_command():
    assert resolve_led_command("off") is Command.LED_OFF
    assert resolve_led_command("OFF", 1, 2, 3) is Command.LED_OFF
    assert resolve_led_command(None, 1, 2, 3) == "~M146 r1 g2 b3"
    assert resolve_led_command(None, 1, "2", 3) is Command.LED_ON
    assert resolve_led_command(None, True, 2, 3) is Command.LED_ON
    assert resolve_led_command("on") is Command.LED_ON


@pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
def test_non_finite_channels_fall_back_to_white(bad):
    assert resolve_led_command(None, bad, 0, 0) is Command.LED_ON
    assert resolve_led_command(None, 0, 0, bad) is Command.LED_ON


@pytest.mark.asyncio
async def test_set_led_with_nan_channel_sends_white(fake_client):
    controller = PrinterController(fake_client)

    outcome = await controller.set_led("10.0.0.5", red=math.nan, green=0, blue=0)

    assert outcome.action == "led"
    assert fake_client.commands() == ["~M601 S1", "~M146 r255 g255 b255"]


def test_fractional_channels_are_rounded():
    assert resolve_led_command(None, 12.7, 0.4, 300.2) == "~M146 r13 g0 b255"
    assert resolve_led_command(None, 10**400, -(10**400), 5) == "~M146 r255 g0 b5"
