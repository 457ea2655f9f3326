"""An in-memory signal host, for testing and dry runs.

Signal units and their parameters are declared up front.  Parameter limits are
not enforced here, as the real host doesn't do so either; only writes to
unknown parameters fail.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple  # pylint: disable=unused-import

from .signal_host import ParameterInfo, RunMode, SignalHost

LOGGER = logging.getLogger('lasercal.drivers.simulated_host')

ParamSpec = Tuple[Any, float, float]  # pylint: disable=invalid-name
"""Initial value, minimum and maximum of a simulated parameter."""


class SimulatedHost(SignalHost):
    """Keep the state of a signal host in memory.

    Every successful write is recorded in ``writes`` as (unit, param, value).
    """

    def __init__(self, mode: RunMode = RunMode.IDLE,
                 mode_lag: Optional[int] = 0,
                 sampling_rates: Dict[str, float] = None) -> None:
        """
        :param mode: Initial run mode.
        :param mode_lag: A requested mode is only reported after this many
                    subsequent mode queries.  None never reports it.
        :param sampling_rates: Sampling rate in Hz by device name.
        """
        self.mode = mode
        self.mode_lag = mode_lag
        self.sampling_rates = dict(sampling_rates or {'RZ2': 24414.0625})
        self.writes = []  # type: List[Tuple[str, str, Any]]
        self.mode_requests = []  # type: List[RunMode]
        self.rejected = set()  # type: set
        """(unit, param) pairs for which the host refuses writes."""
        self.unreachable = False
        """Make every call fail as if the connection was lost."""

        self._values = {}  # type: Dict[str, Dict[str, Any]]
        self._info = {}  # type: Dict[str, Dict[str, ParameterInfo]]
        self._parents = {}  # type: Dict[str, str]
        self._read_hooks = {}  # type: Dict[Tuple[str, str], Callable[[], float]]
        self._pending_mode = None  # type: Optional[RunMode]
        self._lag_left = 0

    def add_unit(self, name: str, params: Dict[str, ParamSpec],
                 parent: str = 'RZ2') -> None:
        """Declare a signal unit.

        List valued parameters become array parameters of that length.
        """
        self._values[name] = {}
        self._info[name] = {}
        self._parents[name] = parent
        for param, (value, minimum, maximum) in params.items():
            is_array = isinstance(value, (list, tuple))
            self._values[name][param] = list(value) if is_array else value
            self._info[name][param] = ParameterInfo(
                name=param, unit='', min=minimum, max=maximum, access='Read/Write',
                type='Float', array=len(value) if is_array else 1)

    def on_read(self, unit: str, param: str, hook: Callable[[], float]) -> None:
        """Let ``hook()`` produce the value whenever the parameter is read."""
        self._read_hooks[(unit, param)] = hook

    def value(self, unit: str, param: str) -> Any:
        """The current value, bypassing read hooks."""
        return self._values[unit][param]

    async def get_mode(self) -> RunMode:
        self._check_connection()
        if self._pending_mode is not None and self.mode_lag is not None:
            if self._lag_left <= 0:
                self.mode = self._pending_mode
                self._pending_mode = None
            else:
                self._lag_left -= 1
        return self.mode

    async def set_mode(self, mode: RunMode) -> None:
        self._check_connection()
        LOGGER.debug("Mode change to %s requested.", mode.name)
        self.mode_requests.append(mode)
        if self.mode_lag == 0:
            self.mode = mode
            self._pending_mode = None
        else:
            self._pending_mode = mode
            self._lag_left = self.mode_lag or 0

    async def list_units(self) -> List[str]:
        self._check_connection()
        return list(self._values)

    async def get_unit_info(self, unit: str) -> Dict[str, Any]:
        self._check_unit(unit)
        return {'name': unit, 'parent': self._parents[unit]}

    async def get_unit_parent(self, unit: str) -> str:
        self._check_unit(unit)
        return self._parents[unit]

    async def get_sampling_rates(self) -> Dict[str, float]:
        self._check_connection()
        return dict(self.sampling_rates)

    async def get_parameter_names(self, unit: str) -> List[str]:
        self._check_unit(unit)
        return list(self._values[unit])

    async def get_parameter_info(self, unit: str, param: str) -> ParameterInfo:
        self._check_param(unit, param)
        return self._info[unit][param]

    async def get_parameter(self, unit: str, param: str) -> float:
        self._check_param(unit, param)
        hook = self._read_hooks.get((unit, param))
        if hook is not None:
            return hook()
        return self._values[unit][param]

    async def set_parameter(self, unit: str, param: str, value: float) -> bool:
        self._check_param(unit, param)
        if (unit, param) in self.rejected:
            return False
        self._values[unit][param] = value
        self.writes.append((unit, param, value))
        return True

    async def get_parameter_values(self, unit: str, param: str,
                                   count: int = -1, offset: int = 0) -> List[float]:
        self._check_param(unit, param)
        values = self._values[unit][param]
        end = len(values) if count < 0 else offset + count
        return list(values[offset:end])

    async def set_parameter_values(self, unit: str, param: str,
                                   values: Sequence[float], offset: int = 0) -> bool:
        self._check_param(unit, param)
        if (unit, param) in self.rejected:
            return False
        array = self._values[unit][param]
        if offset < 0 or offset + len(values) > len(array):
            return False
        array[offset:offset + len(values)] = list(values)
        self.writes.append((unit, param, list(values)))
        return True

    def _check_connection(self) -> None:
        if self.unreachable:
            raise ConnectionError("Simulated signal host is unreachable.")

    def _check_unit(self, unit: str) -> None:
        self._check_connection()
        if unit not in self._values:
            raise ConnectionError("No signal unit named {}.".format(unit))

    def _check_param(self, unit: str, param: str) -> None:
        self._check_unit(unit)
        if param not in self._values[unit]:
            raise ConnectionError("Signal unit {} has no parameter {}.".format(
                unit, param))
