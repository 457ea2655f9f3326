"""Fit the laser transfer function to measured power values.

A single, deterministic bounded least squares search is done.  Starting values
are fixed and tuned for diode lasers driven in the 0 to 5V range; only the
baseline power is taken from the data.
"""
import logging
from typing import Sequence, Tuple, Union

import numpy as np
from scipy import optimize

from .. import constants as cs
from ..errors import InvalidArgument
from . import transfer
from .transfer import TransferCoefficients

LOGGER = logging.getLogger('lasercal.analysis.fitting')

ArrayLike = Union[Sequence[float], np.ndarray]  # pylint: disable=invalid-name

RESIDUAL_PENALTY = 1e12
"""Substituted for residuals the model can't compute at a trial point."""


def initial_guess(volts: ArrayLike, milliwatts: ArrayLike) -> np.ndarray:
    """Starting point of the coefficient search.

    The baseline is the power measured at the lowest tested voltage (first
    occurrence if that voltage was tested repeatedly).
    """
    volts, milliwatts = _validate(volts, milliwatts)
    return np.array([milliwatts[np.argmin(volts)]] + list(cs.FIT_SEED))


def fit_bounds(volts: ArrayLike, milliwatts: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    """Lower and upper coefficient bounds for the search.

    All coefficients are non-negative.  If the laser was measured at exactly
    0V, the baseline can't be lower than the power measured there.
    """
    volts, milliwatts = _validate(volts, milliwatts)
    lower = np.zeros(5)
    min_index = np.argmin(volts)
    if volts[min_index] == 0:
        lower[0] = milliwatts[min_index]
    upper = np.full(5, np.inf)
    return lower, upper


def fit_coefficients(volts: ArrayLike, milliwatts: ArrayLike) -> TransferCoefficients:
    """Find the transfer coefficients that best explain the measured data.

    Inputs of any shape are flattened, which allows fitting the pooled data of
    several output channels at once.

    :param volts: Input voltages.
    :param milliwatts: Measured output power, index-aligned with `volts`.
    :raises InvalidArgument: Inputs are not finite and non-negative, or have
                different length.
    """
    volts, milliwatts = _validate(volts, milliwatts)
    seed = initial_guess(volts, milliwatts)
    lower, upper = fit_bounds(volts, milliwatts)

    def residuals(coeffs: np.ndarray) -> np.ndarray:
        try:
            predicted = transfer.forward(coeffs, volts)
        except InvalidArgument:  # Trial point left the valid domain.
            return np.full(volts.size, RESIDUAL_PENALTY)
        return np.nan_to_num(predicted - milliwatts, nan=RESIDUAL_PENALTY,
                             posinf=RESIDUAL_PENALTY, neginf=-RESIDUAL_PENALTY)

    result = optimize.least_squares(residuals, seed, bounds=(lower, upper),
                                    method='trf', ftol=1e-12, xtol=1e-12,
                                    gtol=1e-12, max_nfev=20000)
    if not result.success:
        LOGGER.warning("Fit did not converge: %s", result.message)
    coefficients = TransferCoefficients(*(float(c) for c in result.x))
    LOGGER.debug("Fitted %s (cost %s, %s evaluations).",
                 coefficients, result.cost, result.nfev)
    return coefficients


def _validate(volts: ArrayLike, milliwatts: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    volts = transfer.as_valid_array(volts, 'volts').ravel()
    milliwatts = transfer.as_valid_array(milliwatts, 'milliwatts').ravel()
    if volts.size != milliwatts.size:
        raise InvalidArgument("Got {} voltages but {} power values.".format(
            volts.size, milliwatts.size))
    if volts.size == 0:
        raise InvalidArgument("Can't fit without any data.")
    return volts, milliwatts
