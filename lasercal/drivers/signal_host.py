"""The interface to a real-time signal host, e.g. TDT Synapse.

The signal host runs an experiment made up of named signal units ("gizmos"),
each exposing named parameters.  Parameters may be scalar or array valued and
carry limits.  The host itself has a run mode; signal units only run in the
runtime modes.
"""
from enum import IntEnum
import logging
import typing
from typing import Any, Dict, List, Sequence  # pylint: disable=unused-import

from .. import constants as cs
from ..errors import Timeout
from ..util import asyncio_tools as tools

LOGGER = logging.getLogger('lasercal.drivers.signal_host')


class RunMode(IntEnum):
    """Run modes of the signal host, in order of escalation."""
    IDLE = 0
    STANDBY = 1
    PREVIEW = 2
    RECORD = 3

RUNTIME_MODES = (RunMode.PREVIEW, RunMode.RECORD)
"""Signal units only process data in these modes."""

ParameterInfo = typing.NamedTuple('ParameterInfo', [('name', str),
                                                    ('unit', str),
                                                    ('min', float),
                                                    ('max', float),
                                                    ('access', str),
                                                    ('type', str),
                                                    ('array', int)])
"""Description of a signal unit parameter.

`array` is the number of elements for array valued parameters and 1 for
scalars.
"""


class SignalHost:
    """The remote operations a signal host offers.

    All methods are coroutines.  Failing to communicate with the host raises
    ``ConnectionError``.
    """

    async def get_mode(self) -> RunMode:
        raise NotImplementedError

    async def set_mode(self, mode: RunMode) -> None:
        """Request a run mode change.

        This doesn't wait for the change to happen, see ``ensure_run_mode()``.
        """
        raise NotImplementedError

    async def list_units(self) -> List[str]:
        """Names of all signal units in the running experiment."""
        raise NotImplementedError

    async def get_unit_info(self, unit: str) -> Dict[str, Any]:
        raise NotImplementedError

    async def get_unit_parent(self, unit: str) -> str:
        """The device the given unit is running on."""
        raise NotImplementedError

    async def get_sampling_rates(self) -> Dict[str, float]:
        """Sampling rate in Hz of every device, by device name."""
        raise NotImplementedError

    async def get_parameter_names(self, unit: str) -> List[str]:
        raise NotImplementedError

    async def get_parameter_info(self, unit: str, param: str) -> ParameterInfo:
        raise NotImplementedError

    async def get_parameter(self, unit: str, param: str) -> float:
        raise NotImplementedError

    async def set_parameter(self, unit: str, param: str, value: float) -> bool:
        """Set a scalar parameter.

        :returns: Whether the host accepted the new value.
        """
        raise NotImplementedError

    async def get_parameter_values(self, unit: str, param: str,
                                   count: int = -1, offset: int = 0) -> List[float]:
        """Read ``count`` elements of an array parameter, -1 reading all."""
        raise NotImplementedError

    async def set_parameter_values(self, unit: str, param: str,
                                   values: Sequence[float], offset: int = 0) -> bool:
        """Write into an array parameter, starting at element ``offset``.

        :returns: Whether the host accepted the new values.
        """
        raise NotImplementedError


async def ensure_run_mode(host: SignalHost, mode: RunMode,
                          checks: int = cs.MODE_CHECKS,
                          interval: float = cs.MODE_CHECK_INTERVAL) -> None:
    """Put the host into ``mode`` and wait until it confirms the change.

    Does nothing if the host is in the requested mode already.

    :raises Timeout: The host didn't report the new mode after ``checks``
                checks, spaced ``interval`` seconds apart.
    """
    if await host.get_mode() == mode:
        return
    LOGGER.info("Switching signal host to %s mode.", mode.name)
    await host.set_mode(mode)

    async def is_confirmed() -> bool:
        return await host.get_mode() == mode

    if not await tools.wait_for_condition(is_confirmed, checks, interval):
        raise Timeout("Signal host didn't switch to {} mode within {:.1f}s.".format(
            mode.name, checks * interval))
