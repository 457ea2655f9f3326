"""Tests for the asyncio helpers, the operator console and log utilities.

This module is not to be run manually but will instead be found and invoked
automatically by the Pytest test suite.
"""
import asyncio

from lasercal import logger
from lasercal.util import asyncio_tools as tools
from lasercal.util.console import ScriptedOperator


def test_async_call_takes_both_kinds():
    async def double_async(value):
        return 2 * value

    assert asyncio.run(tools.async_call(double_async, 2)) == 4
    assert asyncio.run(tools.async_call(lambda value: 3 * value, 2)) == 6


def test_safe_async_call_swallows_errors():
    def explode():
        raise RuntimeError("Boom")

    assert asyncio.run(tools.safe_async_call(explode)) is None


def test_wait_for_condition():
    calls = []

    def third_time_lucky():
        calls.append(None)
        return len(calls) >= 3

    assert asyncio.run(tools.wait_for_condition(third_time_lucky, 5, 0))
    assert len(calls) == 3
    calls.clear()
    assert not asyncio.run(tools.wait_for_condition(third_time_lucky, 2, 0))


def test_repeat_task():
    calls = []
    asyncio.run(tools.repeat_task(lambda: calls.append(None), 0, reps=3,
                                  min_wait_time=0))
    assert len(calls) == 3


def test_scripted_operator():
    operator = ScriptedOperator(['1.5'])

    async def talk():
        await operator.confirm("Block the beam.")
        first = await operator.ask("Power?")
        second = await operator.ask("Power?")
        return first, second

    assert asyncio.run(talk()) == ('1.5', '')
    assert operator.messages == ["Block the beam.", "Power?", "Power?"]


def test_ellipsicate():
    assert logger.ellipsicate('short') == 'short'
    assert logger.ellipsicate('a' * 20 + 'b' * 30) == 'a' * 17 + ' ... ' + 'b' * 17


def test_quantities_dropped_before_init():
    logger.log_quantity('laser0', '1.0\t2.0')
