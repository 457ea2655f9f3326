"""Spline lookup tables between input voltage and output power.

Next to the fitted transfer function, every laser gets a pair of cubic splines
through its measured data: ``forward`` maps volts to mW, ``inverse`` maps mW
to volts.  They follow the data exactly, including any features the 5-term
model can't express.  Multi-channel lasers are interpolated on the mean power
of their channels.
"""
import logging
import typing
from typing import Optional, Sequence, Union

import numpy as np
from scipy import interpolate

from ..errors import InvalidArgument
from . import transfer

LOGGER = logging.getLogger('lasercal.analysis.splines')

LookupSplines = typing.NamedTuple('LookupSplines',
                                  [('forward', Optional[interpolate.PPoly]),
                                   ('inverse', Optional[interpolate.PPoly])])
"""Piecewise cubic polynomials, volts -> mW and mW -> volts.

A direction is None if the data holds fewer than two distinct sites for it.
"""
SPLINE_DIRECTIONS = ('fwd', 'inv')
"""Short names of the `LookupSplines` fields, as used in archive keys."""


def fit_splines(volts: Union[Sequence[float], np.ndarray],
                milliwatts: Union[Sequence[float], np.ndarray]) -> LookupSplines:
    """Interpolate measured power of a laser in both directions.

    Repeated sites are replaced by a single site holding their mean value.

    :param volts: Input voltages, in any order.
    :param milliwatts: Output power, index-aligned with `volts`.
    :raises InvalidArgument: Inputs are not finite and non-negative, have
                different length or are empty.
    """
    volts = transfer.as_valid_array(volts, 'volts').ravel()
    milliwatts = transfer.as_valid_array(milliwatts, 'milliwatts').ravel()
    if volts.size != milliwatts.size:
        raise InvalidArgument("Got {} voltages but {} power values.".format(
            volts.size, milliwatts.size))
    if volts.size == 0:
        raise InvalidArgument("Can't interpolate without any data.")
    return LookupSplines(_spline(volts, milliwatts), _spline(milliwatts, volts))


def mean_power(powers: Sequence[np.ndarray]) -> np.ndarray:
    """Average the index-aligned power readings of several channels."""
    return np.mean(np.stack([np.asarray(p, dtype=float) for p in powers]), axis=0)


def _spline(sites: np.ndarray, values: np.ndarray) -> Optional[interpolate.CubicSpline]:
    unique_sites, index = np.unique(sites, return_inverse=True)
    if unique_sites.size < 2:
        LOGGER.warning("Can't interpolate %s distinct site(s), skipping spline.",
                       unique_sites.size)
        return None
    index = index.ravel()
    means = np.bincount(index, weights=values) / np.bincount(index)
    return interpolate.CubicSpline(unique_sites, means)
