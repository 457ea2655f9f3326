"""Various constants and common objects used throughout lasercal."""
import typing


#########
# Types #  Type definitions used in multiple places.
#########

# The following two classes are actually just floats. We differentiate them for
# the sake of MyPy type checking, as they are easy to confuse when programming.
class Volts(float):
    """Laser input voltage, as commanded through the signal host."""
    pass

class MilliWatts(float):
    """Optical emission power of a laser (or of one of its output channels)."""
    pass

VoltRange = typing.Tuple[float, float]
"""Inclusive (minimum, maximum) range of laser input voltages."""

# pylint: disable=invalid-name

##################
# Base Constants #  Those are not tied to others in a direct, arithmetical way.
##################

INPUT_VOLT_LIMITS = (0., 5.5)
"""No configured input voltage range may leave this interval.

The analogue outputs feeding the lasers are specified up to 5V, we allow a
little headroom for lasers that saturate late.
"""
INPUT_VOLT_RANGE = (0., 5.)
"""Default inclusive range of voltages to test when measuring a laser."""
INPUT_SAMPLE_COUNT = 50
"""Default number of evenly spaced voltages to test per laser."""

MODE_CHECKS = 25
"""Verify a requested signal host run mode this many times before giving up."""
MODE_CHECK_INTERVAL = .2
"""Seconds to wait between two consecutive run mode verifications."""

LASER_TESTER = 'LaserTester1'
"""Default name of the signal unit that feeds the laser input voltage."""
LASER_INDEX_RANGE = (0, 1)
"""A laser tester unit drives at most two lasers, selected by index."""

SAMPLE_MAX_RETRIES = None  # type: typing.Optional[int]
"""Retry a rejected sample at most this many times before giving up.

`None` keeps on retrying until a valid sample was taken.  Saturated meter
readings are bounded anyway by the number of available gain stages.
"""

PM100D_COEFFICIENT = 4.5
"""Wavelength correction of a PM100D power meter, in mW at magnitude 1.

Select the wavelength on the meter, switch to manual range and read the range
that measures in the 1 mW scale (e.g. 4.5 mW for 505 nm).
"""
PM100D_MAGNITUDES = (0.01, 0.1, 1., 10., 100., 1000.)
"""Available amplification magnitudes of the power meter, lowest first."""
PM100D_THRESHOLD = 0.95
"""A reading above this fraction of the current range triggers a re-range."""
PM100D_ACCUMULATOR = 'AvgPMvolts'
"""Signal unit averaging the power meter's analogue output."""
PM100D_SETTLE_TIME = 1.
"""Seconds to average the power meter output before reading it."""
PM100D_FULL_SCALE_VOLTS = 2.
"""Power meter analogue output at the upper limit of the current range."""

ACCUMULATOR_STROBE = 'Strobe'
"""Control that gates averaging in the accumulator unit."""
ACCUMULATOR_OUTPUT = 'out_Main'
"""Accumulator parameter holding the averaged value."""

FIT_SEED = (1., .25, 1., 1.)
"""Starting values for (M, V0, P, Vt) in the coefficient search.

These work for diode lasers driven in the 0 to 5V range.  The baseline is
seeded from the data itself.
"""

TABLE_FLOAT_FORMAT = '%.9f'
"""Floating point format of all calibration tables."""
COEFFICIENT_COLUMNS = ['index', 'nm', 'name', 'B', 'M', 'V0', 'P', 'Vt']
"""Header of the coefficient table, consumed by the experiment control."""
MEASUREMENT_VOLTS_COLUMN = 'Volts'
"""First column of the raw measurement table."""

DEFAULT_HOST = 'localhost'
"""Host name of the machine running the signal host."""
SYNAPSE_PORT = 24414
"""TCP port of the signal host's HTTP API."""
SYNAPSE_REQUEST_TIMEOUT = 10.
"""Give up on a single API request after this many seconds."""

# pylint: enable=invalid-name
