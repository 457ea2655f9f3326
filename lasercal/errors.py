"""The exceptions raised throughout lasercal.

Fatal errors propagate to the top of a calibration run, after the measurement
session has disabled the laser and restored the signal host's run mode.
Only ``RetryableReading`` is recovered locally.
"""


class CalibrationError(RuntimeError):
    """Something went wrong while measuring or fitting a laser."""


class InvalidArgument(CalibrationError, ValueError):
    """Malformed or out-of-range configuration or sample data."""


class HardwareMissing(CalibrationError):
    """A required signal unit is not present on the signal host."""


class Timeout(CalibrationError):
    """The signal host didn't confirm a run mode change in time."""


class ConfigurationError(CalibrationError):
    """The setup can't produce a valid calibration.

    This happens if the power meter ran out of gain stages or if pooled
    measurements don't fit together.
    """


class InconsistentInput(ConfigurationError):
    """Measurements to be fitted jointly used different input voltages."""


class RetryableReading(CalibrationError):
    """A single sample was rejected and must be taken again.

    The laser input voltage stays as it is.  This never leaves a measurement
    session.
    """


class RetriesExhausted(CalibrationError):
    """A sample was rejected more often than the configured retry budget."""


class UnitClaimed(CalibrationError):
    """The signal unit is already bound to another handle."""
