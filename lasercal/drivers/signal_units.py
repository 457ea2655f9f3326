"""Handles to individual signal units running on the signal host.

Each handle binds to exactly one named unit.  It checks that the unit offers
all the parameters the handle needs and caches their limits, so that invalid
values are caught before being sent.  No two handles of the same kind may bind
the same unit at once; this is tracked by a ``UnitRegistry``.

Handles are opened asynchronously:

    async with LaserTester(host, 'LaserTester1') as tester:
        await tester.set_voltage(2.5)
"""
import logging
import math
from typing import Any, Dict, List, Set, Tuple  # pylint: disable=unused-import

import numpy as np

from .. import constants as cs
from ..errors import HardwareMissing, InvalidArgument, UnitClaimed
from .signal_host import ParameterInfo, SignalHost  # pylint: disable=unused-import

LOGGER = logging.getLogger('lasercal.drivers.signal_units')

MAX_SIGNAL_VOLTS = 6.
"""Peak analogue output of a laser waveform after scaling and shifting."""
PHOTODIODE_DIRECTIONS = ('falling', 'rising')
"""Photodiode threshold crossing directions, by parameter value."""


class UnitRegistry:
    """Keep track of which signal units are bound to a handle."""

    def __init__(self) -> None:
        self._claims = set()  # type: Set[Tuple[str, str]]

    def claim(self, kind: str, unit: str) -> None:
        """Mark ``unit`` as bound to a handle of type ``kind``.

        :raises UnitClaimed: The unit is bound to another handle of that kind.
        """
        if (kind, unit) in self._claims:
            raise UnitClaimed("{} is already linked to another {} handle.".format(
                unit, kind))
        self._claims.add((kind, unit))

    def release(self, kind: str, unit: str) -> None:
        self._claims.discard((kind, unit))

    def is_claimed(self, kind: str, unit: str) -> bool:
        return (kind, unit) in self._claims

DEFAULT_REGISTRY = UnitRegistry()
"""Registry used by handles that don't get one passed explicitly."""


class SignalUnit:
    """Base class of all signal unit handles.

    :attr REQUIRED_PARAMS: The unit must expose at least these parameters.
    """
    REQUIRED_PARAMS = ()  # type: Tuple[str, ...]

    def __init__(self, host: SignalHost, name: str,
                 registry: UnitRegistry = None) -> None:
        self.name = name
        self.parent = ''
        """The device this unit runs on."""
        self.fs = float('nan')
        """Sampling rate of the parent device in Hz."""
        self.params = []  # type: List[str]
        self.param_info = {}  # type: Dict[str, ParameterInfo]
        self.values = {}  # type: Dict[str, Any]
        """The last known value of every parameter."""
        self._host = host
        self._registry = registry or DEFAULT_REGISTRY
        self._is_open = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    async def open(self) -> None:
        """Bind to the unit and read all its parameters.

        :raises HardwareMissing: The unit doesn't exist or lacks parameters.
        :raises UnitClaimed: Another handle of this kind is bound to the unit.
        """
        units = await self._host.list_units()
        if self.name not in units:
            raise HardwareMissing("{} is not a unit of the signal host. "
                                  "Available units: {}".format(
                                      self.name, ', '.join(units)))
        self._registry.claim(self._kind, self.name)
        try:
            self.params = await self._host.get_parameter_names(self.name)
            missing = [p for p in self.REQUIRED_PARAMS if p not in self.params]
            if missing:
                raise HardwareMissing("Unit {} lacks parameters: {}".format(
                    self.name, ', '.join(missing)))
            self.parent = await self._host.get_unit_parent(self.name)
            rates = await self._host.get_sampling_rates()
            self.fs = float(rates.get(self.parent, float('nan')))
            for param in self.params:
                info = await self._host.get_parameter_info(self.name, param)
                self.param_info[param] = info
                if info.array > 1:
                    self.values[param] = await self._host.get_parameter_values(
                        self.name, param)
                else:
                    self.values[param] = await self._host.get_parameter(
                        self.name, param)
            await self._on_open()
        except BaseException:
            self._registry.release(self._kind, self.name)
            raise
        self._is_open = True
        LOGGER.debug("Opened %s %s on %s.", self._kind, self.name, self.parent)

    async def close(self) -> None:
        """Release the unit.  The unit's parameters stay as they are."""
        if self._is_open:
            self._registry.release(self._kind, self.name)
            self._is_open = False

    async def __aenter__(self) -> 'SignalUnit':
        await self.open()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    def check_limits(self, param: str, value: float) -> float:
        """Return ``value`` if it is a valid scalar for ``param``.

        :raises InvalidArgument: Value is not scalar or exceeds the limits.
        """
        if np.ndim(value) != 0:
            raise InvalidArgument("New value of {} must be scalar.".format(param))
        info = self.param_info[param]
        if value < info.min:
            raise InvalidArgument("New value {} below {}'s limits.".format(value, param))
        if value > info.max:
            raise InvalidArgument("New value {} above {}'s limits.".format(value, param))
        return value

    async def set(self, param: str, value: float) -> None:
        """Check a new value against the limits and send it to the host.

        :raises InvalidArgument: See ``check_limits()``.
        :raises ConnectionError: The host didn't accept the value.
        """
        self._ensure_open()
        value = self.check_limits(param, value)
        if not await self._host.set_parameter(self.name, param, value):
            raise ConnectionError("Failed to update control {} of unit {}.".format(
                param, self.name))
        self.values[param] = value

    async def _on_open(self) -> None:
        """Derive additional state from the freshly read parameters."""
        pass

    @property
    def _kind(self) -> str:
        return type(self).__name__

    def _ensure_open(self) -> None:
        if not self._is_open:
            raise RuntimeError("{} handle {} is not open.".format(self._kind, self.name))


class LaserTester(SignalUnit):
    """The unit feeding a constant input voltage to one of two lasers."""
    REQUIRED_PARAMS = ('Wavelength', 'Enable', 'VoltsSF')

    def __init__(self, host: SignalHost, name: str = cs.LASER_TESTER,
                 registry: UnitRegistry = None, ttl_invert: bool = False) -> None:
        """
        :param ttl_invert: The laser's enable input is active low.
        """
        super().__init__(host, name, registry)
        self.ttl_invert = bool(ttl_invert)

    async def select_laser(self, index: int) -> None:
        """Route the output to the laser with given index."""
        if index not in cs.LASER_INDEX_RANGE:
            raise InvalidArgument("Laser index must be one of {}.".format(
                cs.LASER_INDEX_RANGE))
        await self.set('Wavelength', index)

    async def set_voltage(self, volts: float) -> None:
        await self.set('VoltsSF', volts)

    async def set_enabled(self, enabled: bool) -> None:
        """Switch the laser's enable line, honouring the TTL logic."""
        await self.set('Enable', self.ttl_level(enabled))

    def ttl_level(self, enabled: bool) -> int:
        """The enable line level needed to switch the laser on or off."""
        return abs(int(self.ttl_invert) - int(bool(enabled)))


class LaserController(SignalUnit):
    """Controls the joint timing of laser emission and data buffering.

    Laser onset is triggered by an event code, optionally followed by a
    photodiode threshold crossing (e.g. of a visual stimulus), or manually.
    """
    REQUIRED_PARAMS = ('EventIntOn', 'EventIntReset', 'LaserDelay', 'UseLaser',
                       'UsePhotodiode', 'PhotodiodeThreshold',
                       'PhotodiodeDirection', 'PhotodiodeTimeLow',
                       'Enablemanual', 'Trigger', 'EventIntRstOpt')

    async def set_event_codes(self, on: int = None, reset: int = None,
                              optional_reset: int = None) -> None:
        """Set the event codes starting and stopping laser emission.

        :param on: Triggers onset.
        :param reset: Late but guaranteed offset code, e.g. end of trial.
        :param optional_reset: Early offset code, e.g. a behavioural response.
        """
        for param, code in (('EventIntOn', on), ('EventIntReset', reset),
                            ('EventIntRstOpt', optional_reset)):
            if code is not None:
                await self.set(param, int(code))

    async def set_laser_delay(self, milliseconds: float) -> None:
        """Delay laser onset after the trigger.  Buffering isn't delayed."""
        await self.set('LaserDelay', milliseconds)

    async def set_use_laser(self, use: bool) -> None:
        await self.set('UseLaser', int(bool(use)))

    async def set_use_photodiode(self, use: bool) -> None:
        """Wait for a photodiode threshold crossing after the onset code."""
        await self.set('UsePhotodiode', int(bool(use)))

    async def set_photodiode_threshold(self, threshold: float) -> None:
        await self.set('PhotodiodeThreshold', threshold)

    async def set_photodiode_direction(self, direction: str) -> None:
        """Either 'falling' or 'rising'."""
        if direction not in PHOTODIODE_DIRECTIONS:
            raise InvalidArgument("Invalid direction. Must be 'falling' or 'rising'.")
        await self.set('PhotodiodeDirection', PHOTODIODE_DIRECTIONS.index(direction))

    @property
    def photodiode_direction(self) -> str:
        return PHOTODIODE_DIRECTIONS[int(bool(self.values['PhotodiodeDirection']))]

    async def set_photodiode_time_low(self, milliseconds: float) -> None:
        """Ignore further threshold crossings for this long."""
        await self.set('PhotodiodeTimeLow', milliseconds)

    async def set_manual_enable(self, manual: bool) -> None:
        """Trigger onset by the manual button instead of event codes."""
        await self.set('Enablemanual', int(bool(manual)))

    async def set_trigger(self, pressed: bool) -> None:
        await self.set('Trigger', int(bool(pressed)))


class LaserSignal(SignalUnit):
    """A sinusoidal laser waveform generator, optionally plateaued.

    The gizmo's ``Timer`` control counts device samples.  Here, the timer is
    handled in milliseconds, always rounded up to complete sine cycles first
    and to complete device samples second.
    """
    REQUIRED_PARAMS = ('DAQON', 'DAQOFF', 'Timer', 'PreAmp', 'Laser0SF',
                       'Laser0Shift', 'Laser1Shift', 'Laser1SF', 'LaserID',
                       'Frequency', 'LatchRfTime')

    def __init__(self, host: SignalHost, name: str,
                 registry: UnitRegistry = None) -> None:
        super().__init__(host, name, registry)
        self.timer_samples = 0
        self.plateau = False

    @property
    def timer(self) -> float:
        """Emission duration in milliseconds."""
        return self.timer_samples / self.fs * 1e3

    @property
    def frequency(self) -> float:
        return float(self.values['Frequency'])

    async def _on_open(self) -> None:
        self.timer_samples = int(self.values['Timer'])
        # A latch time shorter than half the timer leaves room for a plateau.
        self.plateau = self.values['LatchRfTime'] < self.timer_samples / 2

    async def set_daq_codes(self, on: int = None, off: int = None) -> None:
        """Event codes starting and aborting emission.

        Every ``on`` code must be followed by an ``off`` code before the next
        ``on`` code is honoured.
        """
        if on is not None:
            await self.set('DAQON', int(on))
        if off is not None:
            await self.set('DAQOFF', int(off))

    async def set_timer(self, milliseconds: float) -> None:
        """Set the emission duration, rounding up as described above."""
        if np.ndim(milliseconds) != 0:
            raise InvalidArgument("New Timer value must be scalar.")
        cycles = _ceil(milliseconds / 1e3 * self.frequency)
        samples = _ceil(cycles / self.frequency * self.fs)
        await self.set('Timer', samples)
        self.timer_samples = samples
        if not self.plateau:
            await self.set('LatchRfTime', self.timer_samples)

    async def set_frequency(self, hertz: float) -> None:
        """Set the sine frequency and round the timer to the new cycles."""
        await self.set('Frequency', hertz)
        cycles = _ceil(self.timer / 1e3 * hertz)
        await self.set_timer(cycles / hertz * 1e3)
        if self.plateau:
            await self.set_plateau(True)

    async def set_preamp(self, fraction: float) -> None:
        """Scale the raw [0, 1] waveform before conversion to volts."""
        await self.set('PreAmp', fraction)

    async def set_laser_id(self, laser_id: int) -> None:
        """Select which of the two output pairs emits."""
        await self.set('LaserID', int(laser_id))

    async def set_scaling(self, laser_id: int, factor: float, shift: float) -> None:
        """Conversion of the pre-amp waveform to volts: ``factor * x + shift``.

        :raises InvalidArgument: The output would exceed ``MAX_SIGNAL_VOLTS``.
        """
        if laser_id not in cs.LASER_INDEX_RANGE:
            raise InvalidArgument("Laser ID must be one of {}.".format(
                cs.LASER_INDEX_RANGE))
        if factor + shift > MAX_SIGNAL_VOLTS:
            raise InvalidArgument("Laser{} would be driven above {}V.".format(
                laser_id, MAX_SIGNAL_VOLTS))
        await self.set('Laser{}SF'.format(laser_id), factor)
        await self.set('Laser{}Shift'.format(laser_id), shift)

    async def set_plateau(self, plateau: bool) -> None:
        """Hold the first sine peak until the final falling phase.

        With a plateau, rising and falling phase last half a period each.
        Without, the latch time spans the whole timer and is never reached.
        """
        if np.ndim(plateau) != 0:
            raise InvalidArgument("New Plateau value must be scalar.")
        self.plateau = bool(plateau)
        if self.plateau:
            await self.set('LatchRfTime', math.ceil(0.5 / self.frequency * self.fs))
        else:
            await self.set('LatchRfTime', self.timer_samples)


class LaserSignalBuffer(SignalUnit):
    """An arbitrary laser waveform, played back from a buffer.

    Samples are stored as 16 bit integers (``Scale * value``), packed in pairs
    into the 32 bit words of the ``Signal`` array.  The first word is reserved
    and kept at zero.
    """
    REQUIRED_PARAMS = ('Signal', 'Timer', 'TickPerSamp', 'Scale')

    def __init__(self, host: SignalHost, name: str,
                 registry: UnitRegistry = None) -> None:
        super().__init__(host, name, registry)
        self.signal = np.zeros(0)
        self.max_length = 0
        self.fs_signal = float('nan')
        self.timer_sec = 0.

    @property
    def scale(self) -> float:
        return float(self.values['Scale'])

    @property
    def tick_per_sample(self) -> int:
        return int(self.values['TickPerSamp'])

    async def _on_open(self) -> None:
        self.max_length = 2 * self.param_info['Signal'].array - 2
        words = np.asarray(self.values['Signal'][1:], dtype=float).astype('<i4')
        self.signal = words.view('<i2').astype(float) / self.scale
        if not await self._host.set_parameter_values(self.name, 'Signal', [0], 0):
            raise ConnectionError("Failed to reset Signal of {}.".format(self.name))
        self.fs_signal = self.fs / self.tick_per_sample
        self.timer_sec = self.signal.size / self.fs_signal

    async def set_fs_target(self, hertz: float) -> None:
        """Play the signal back at the closest rate not above ``hertz``."""
        await self.set('TickPerSamp', math.floor(self.fs / hertz))
        self.fs_signal = self.fs / self.tick_per_sample
        self.timer_sec = self.signal.size / self.fs_signal

    async def set_signal(self, signal: np.ndarray) -> None:
        """Upload a new waveform.

        :raises InvalidArgument: Not a vector or longer than ``max_length``.
        """
        self._ensure_open()
        signal = np.asarray(signal, dtype=float)
        if signal.ndim != 1 or signal.size > self.max_length:
            raise InvalidArgument("Signal must be vector with length <= {}.".format(
                self.max_length))
        samples = np.clip(np.round(self.scale * signal), -2**15, 2**15 - 1)
        samples = samples.astype('<i2')
        if samples.size % 2:
            samples = np.append(samples, np.zeros(1, dtype='<i2'))
        words = samples.view('<i4')
        if not await self._host.set_parameter_values(self.name, 'Signal',
                                                     words.tolist(), 1):
            raise ConnectionError("Failed to write to Signal of {}.".format(self.name))
        self.signal = signal
        self.timer_sec = signal.size / self.fs_signal


def _ceil(value: float) -> int:
    """Round up, ignoring float noise that would add a whole extra unit."""
    return int(math.ceil(round(value, 9)))
