"""Read the parameter file controlling a batch calibration.

The file has one ``<name>,<value>`` pair per line, e.g.

    tabledir,/home/lab/calibration
    coefftable,lasercoef
    powertable,laserpower
    host,localhost
    input,50
    range,[0 5]
    measurement,pm100d
    chans,1
    pm100d_coef_505nm,4.5

Numeric lists are separated by whitespace or semicolons and may be enclosed in
brackets.  Every parameter but the ``pm100d_coef_<wavelength>nm`` entries has
a default.
"""
import logging
import math
import re
import typing
from typing import Dict, List, Optional, Tuple, Union  # pylint: disable=unused-import

import pandas as pd

from . import constants as cs
from .controller.session import check_volt_range
from .controller.strategies import MeasurementMethod
from .errors import InvalidArgument

LOGGER = logging.getLogger('lasercal.config')

METER_COEFFICIENT = re.compile(r'^pm100d_coef_(\d+)nm$')
"""Parameter name of a power meter wavelength correction."""

CalibrationConfig = typing.NamedTuple('CalibrationConfig', [
    ('table_dir', str),
    ('coefficient_table', str),
    ('power_table', str),
    ('host', str),
    ('laser_tester', str),
    ('input', Union[int, Tuple[float, ...]]),
    ('volt_range', cs.VoltRange),
    ('measurement', MeasurementMethod),
    ('channels', int),
    ('ttl_invert', bool),
    ('max_retries', Optional[int]),
    ('pm100d_initial_magnitude', float),
    ('pm100d_timer', float),
    ('pm100d_threshold', float),
    ('pm100d_magnitudes', Tuple[float, ...]),
    ('pm100d_accumulator', str),
    ('meter_coefficients', Dict[int, float])])
"""Settings of a batch calibration run.

`input`
    Number of evenly spaced voltages, or the voltages themselves.
`meter_coefficients`
    PM100D wavelength correction by wavelength in nm.
"""

DEFAULTS = {
    'tabledir': '.',
    'coefftable': 'lasercoef',
    'powertable': 'laserpower',
    'host': cs.DEFAULT_HOST,
    'lasertester': cs.LASER_TESTER,
    'input': str(cs.INPUT_SAMPLE_COUNT),
    'range': '{} {}'.format(*cs.INPUT_VOLT_RANGE),
    'measurement': MeasurementMethod.MANUAL.value,
    'chans': '1',
    'ttlinvert': '0',
    'max_retries': 'none',
    'pm100d_initmagnitude': '',
    'pm100d_timer': str(cs.PM100D_SETTLE_TIME),
    'pm100d_threshold': str(cs.PM100D_THRESHOLD),
    'pm100d_magnitudes': ' '.join(str(m) for m in cs.PM100D_MAGNITUDES),
    'pm100d_signalaccumulator': cs.PM100D_ACCUMULATOR,
}  # type: Dict[str, str]
"""Parameter file names and their default values.

An empty `pm100d_initmagnitude` selects the first of `pm100d_magnitudes`.
"""


def load_config(path: str) -> CalibrationConfig:
    """Read and validate a parameter file.

    :raises InvalidArgument: Unknown parameter names or invalid values.
    """
    return parse_parameters(read_parameter_file(path))


def read_parameter_file(path: str) -> Dict[str, str]:
    """Get the raw name/value pairs of a parameter file.

    :raises InvalidArgument: The file doesn't consist of name/value pairs or
                lists a name twice.
    """
    try:
        frame = pd.read_csv(path, header=None, names=['name', 'value'], dtype=str,
                            skipinitialspace=True, comment='#',
                            keep_default_na=False)
    except pd.errors.EmptyDataError:
        LOGGER.warning("Parameter file %s is empty, using defaults.", path)
        return {}
    except pd.errors.ParserError as err:
        raise InvalidArgument("{} must hold one name,value pair per "
                              "line.".format(path)) from err
    names = [name.strip() for name in frame['name']]
    if len(set(names)) != len(names):
        raise InvalidArgument("{} lists a parameter more than once.".format(path))
    return dict(zip(names, (value.strip() for value in frame['value'])))


def parse_parameters(raw: Dict[str, str]) -> CalibrationConfig:
    """Validate raw parameter strings, filling in defaults.

    :raises InvalidArgument: Unknown parameter names or invalid values.
    """
    params = dict(DEFAULTS)
    coefficients = {}  # type: Dict[int, float]
    for name, value in raw.items():
        match = METER_COEFFICIENT.match(name)
        if match:
            coefficients[int(match.group(1))] = _positive(name, value)
        elif name in DEFAULTS:
            params[name] = value
        else:
            raise InvalidArgument("Unknown parameter name {}".format(name))

    volt_range = check_volt_range(_numbers('range', params['range']))
    magnitudes = tuple(_positive('pm100d_magnitudes', m)
                       for m in _numbers('pm100d_magnitudes', params['pm100d_magnitudes']))
    if not magnitudes:
        raise InvalidArgument("Need at least one pm100d magnitude.")
    # Start at the first range unless told otherwise.
    initial_magnitude = magnitudes[0]
    if params['pm100d_initmagnitude']:
        initial_magnitude = _positive('pm100d_initmagnitude',
                                      params['pm100d_initmagnitude'])
    if initial_magnitude not in magnitudes:
        raise InvalidArgument("pm100d_initmagnitude must be one of {}.".format(magnitudes))
    threshold = _number('pm100d_threshold', params['pm100d_threshold'])
    if not 0 < threshold <= 1:
        raise InvalidArgument("pm100d_threshold must be in (0, 1].")
    timer = _number('pm100d_timer', params['pm100d_timer'])
    if timer < 0:
        raise InvalidArgument("pm100d_timer can't be negative.")
    try:
        measurement = MeasurementMethod(params['measurement'].lower())
    except ValueError as err:
        raise InvalidArgument("Unknown measurement method {}.".format(
            params['measurement'])) from err
    ttl_invert = _integer('ttlinvert', params['ttlinvert'], minimum=0)
    if ttl_invert > 1:
        raise InvalidArgument("ttlinvert must be 0 or 1.")
    max_retries = None  # type: Optional[int]
    if params['max_retries'].lower() not in ('', 'none', 'inf'):
        max_retries = _integer('max_retries', params['max_retries'], minimum=0)

    for name in ('tabledir', 'coefftable', 'powertable', 'host', 'lasertester',
                 'pm100d_signalaccumulator'):
        if not params[name]:
            raise InvalidArgument("Parameter {} can't be empty.".format(name))

    return CalibrationConfig(
        table_dir=params['tabledir'],
        coefficient_table=params['coefftable'],
        power_table=params['powertable'],
        host=params['host'],
        laser_tester=params['lasertester'],
        input=_input(params['input']),
        volt_range=volt_range,
        measurement=measurement,
        channels=_integer('chans', params['chans'], minimum=1),
        ttl_invert=bool(ttl_invert),
        max_retries=max_retries,
        pm100d_initial_magnitude=initial_magnitude,
        pm100d_timer=timer,
        pm100d_threshold=threshold,
        pm100d_magnitudes=magnitudes,
        pm100d_accumulator=params['pm100d_signalaccumulator'],
        meter_coefficients=coefficients)


def _input(value: str) -> Union[int, Tuple[float, ...]]:
    numbers = _numbers('input', value)
    if len(numbers) == 1 and not value.strip().startswith('['):
        return _integer('input', value, minimum=1)
    return tuple(numbers)


def _numbers(name: str, value: str) -> List[float]:
    tokens = [t for t in re.split(r'[\s;]+', value.strip().strip('[]')) if t]
    return [_number(name, token) for token in tokens]


def _number(name: str, value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise InvalidArgument("Invalid value for parameter {}: {}".format(
            name, value)) from None
    if not math.isfinite(number):
        raise InvalidArgument("Parameter {} must be finite.".format(name))
    return number


def _positive(name: str, value: Union[str, float]) -> float:
    number = _number(name, str(value))
    if number <= 0:
        raise InvalidArgument("Parameter {} must be positive.".format(name))
    return number


def _integer(name: str, value: str, minimum: int) -> int:
    number = _number(name, value)
    if number % 1 or number < minimum:
        raise InvalidArgument("Parameter {} must be an integer of at least "
                              "{}.".format(name, minimum))
    return int(number)
