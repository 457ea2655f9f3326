"""Predict laser output power from input voltage and vice versa.

The transfer function starts off as a power function at low input voltages
and switches over to its own tangent above a transition voltage.  This models
diode lasers (e.g. Omicron LuxX+) well: strongly non-linear near the lasing
threshold, linear when driven hard.

With coefficients ``C = (B, M, V0, P, Vt)`` let

    f(v) = B + M * max(0, v - V0)**P
    f'(v) = M * P * max(0, v - V0)**(P - 1)

then

    mW = f(v)                        if v <= Vt
    mW = f(Vt) + f'(Vt) * (v - Vt)   if v > Vt

Value and slope match at ``Vt``.  The inverse splits its domain at the output
value ``f(Vt)`` instead and inverts each branch algebraically.
"""
import logging
import typing
from typing import Sequence, Union

import numpy as np

from ..errors import InvalidArgument

LOGGER = logging.getLogger('lasercal.analysis.transfer')

TransferCoefficients = typing.NamedTuple('TransferCoefficients', [
    ('B', float), ('M', float), ('V0', float), ('P', float), ('Vt', float)])
"""Coefficients of the laser transfer function.

`B`
    Baseline output power in mW.
`M`
    Scaling factor of the power function.
`V0`
    Shift of the power function along the voltage axis.
`P`
    Exponent of the power function.
`Vt`
    Transition voltage; above this, the transfer function is linear.
"""

Coefficients = Union[TransferCoefficients, Sequence[float], np.ndarray]  # pylint: disable=invalid-name
MODES = ('forward', 'inverse')


def transfer(coefficients: Coefficients, values: Union[float, Sequence[float], np.ndarray],
             mode: str = 'forward') -> np.ndarray:
    """Evaluate the transfer function or its inverse element-wise.

    :param coefficients: Five coefficients (B, M, V0, P, Vt).
    :param values: Input volts for "forward", desired mW for "inverse".  Any
                shape; the result has the same shape.
    :param mode: "forward" (volts -> mW) or "inverse" (mW -> volts).
    :raises InvalidArgument: Coefficients are not exactly five values, any
                value is negative or not finite, or the mode is unknown.
    :returns: A float array.  If either coefficients or values are empty, an
                empty array is returned without further checks.
    """
    coeffs = as_valid_array(coefficients, 'coefficients', check=False)
    data = as_valid_array(values, 'values', check=False)
    if coeffs.size == 0 or data.size == 0:
        return np.array([], dtype=float)
    coeffs = as_valid_array(coeffs, 'coefficients')
    data = as_valid_array(data, 'values')
    if coeffs.size != 5:
        raise InvalidArgument("Expecting 5 transfer coefficients, got {}.".format(
            coeffs.size))
    if mode not in MODES:
        raise InvalidArgument('Invalid mode "{}", use one of {}.'.format(mode, MODES))

    b, m, v0, p, vt = coeffs.ravel()
    y0 = _power_function(b, m, v0, p, vt)
    s0 = _power_slope(m, v0, p, vt)
    result = np.zeros(data.shape, dtype=float)

    # The non-linear section is split off on the voltage axis when going
    # forward and on the power axis when going backwards.
    nonlinear = data <= (y0 if mode == 'inverse' else vt)
    linear = ~nonlinear
    with np.errstate(divide='ignore', invalid='ignore'):
        if mode == 'inverse':
            result[nonlinear] = (np.maximum(0, data[nonlinear] - b) / m)**(1 / p) + v0
            result[linear] = (data[linear] - y0) / s0 + vt
        else:
            result[nonlinear] = _power_function(b, m, v0, p, data[nonlinear])
            result[linear] = y0 + s0 * (data[linear] - vt)
    return result


def forward(coefficients: Coefficients,
            volts: Union[float, Sequence[float], np.ndarray]) -> np.ndarray:
    """Predict the output power in mW for given input voltages."""
    return transfer(coefficients, volts, 'forward')


def inverse(coefficients: Coefficients,
            milliwatts: Union[float, Sequence[float], np.ndarray]) -> np.ndarray:
    """Find the input voltages needed to get the given output powers in mW."""
    return transfer(coefficients, milliwatts, 'inverse')


def derivative(coefficients: Coefficients,
               volts: Union[float, Sequence[float], np.ndarray]) -> np.ndarray:
    """The slope of the transfer function in mW per volt.

    The slope is constant above the transition voltage.
    """
    coeffs = as_valid_array(coefficients, 'coefficients', check=False)
    data = as_valid_array(volts, 'volts', check=False)
    if coeffs.size == 0 or data.size == 0:
        return np.array([], dtype=float)
    coeffs = as_valid_array(coeffs, 'coefficients')
    data = as_valid_array(data, 'volts')
    if coeffs.size != 5:
        raise InvalidArgument("Expecting 5 transfer coefficients, got {}.".format(
            coeffs.size))
    _, m, v0, p, vt = coeffs.ravel()
    return _power_slope(m, v0, p, np.minimum(data, vt))


def _power_function(b: float, m: float, v0: float, p: float,
                    volts: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    # The clamp is vital: for non-integer P, negative bases produce NaN.
    return b + m * np.maximum(0, volts - v0)**p


def _power_slope(m: float, v0: float, p: float,
                 volts: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    with np.errstate(divide='ignore', invalid='ignore'):
        return m * p * np.maximum(0, volts - v0)**(p - 1)


def as_valid_array(values, name: str, check: bool = True) -> np.ndarray:
    """Turn ``values`` into a float array.

    :param check: Require all values to be finite, real and non-negative.
    :raises InvalidArgument: Values can't be used by the transfer function.
    """
    if np.iscomplexobj(values):
        raise InvalidArgument("{} must be real-valued.".format(name))
    try:
        array = np.asarray(values, dtype=float)
    except (TypeError, ValueError) as err:
        raise InvalidArgument("{} must be numeric.".format(name)) from err
    if check and not (np.all(np.isfinite(array)) and np.all(array >= 0)):
        raise InvalidArgument("{} must be real-valued, finite, zero or "
                              "positive numbers.".format(name))
    return array
