"""Read and write calibration tables.

Two CSV tables are produced per calibration run:

coefficient table
    One row per laser: ``index,nm,name,B,M,V0,P,Vt``.  This is what the
    experiment control reads to find the input voltage for a desired power.
measurement table
    The raw data: a ``Volts`` column followed by one column of measured mW per
    laser channel, named ``Laser<index>_<nm>nm_ch<channel>_<name>``.

All floats are written as ``%.9f``.  The same data is also archived in numpy's
``.npz`` format, together with the lookup splines of each laser.
"""
import logging
import os
import typing
from typing import Dict, List, Sequence  # pylint: disable=unused-import

import numpy as np
import pandas as pd
from scipy import interpolate

from .. import constants as cs
from ..errors import InvalidArgument
from .splines import SPLINE_DIRECTIONS, LookupSplines
from .transfer import TransferCoefficients

LOGGER = logging.getLogger('lasercal.analysis.tables')

CalibrationRow = typing.NamedTuple('CalibrationRow',
                                   [('index', int),
                                    ('nm', int),
                                    ('name', str),
                                    ('coefficients', TransferCoefficients)])
"""The calibration result of one laser."""


def coefficient_frame(rows: Sequence[CalibrationRow]) -> pd.DataFrame:
    data = [[row.index, row.nm, row.name] + list(row.coefficients) for row in rows]
    frame = pd.DataFrame(data, columns=cs.COEFFICIENT_COLUMNS)
    return frame.astype({'index': int, 'nm': int, 'name': str})


def measurement_frame(voltages: np.ndarray, powers: Sequence[np.ndarray],
                      labels: Sequence[str]) -> pd.DataFrame:
    """Arrange measured powers by channel, one row per input voltage.

    :raises InvalidArgument: Labels and power columns don't match up.
    """
    if len(powers) != len(labels):
        raise InvalidArgument("Got {} power columns but {} labels.".format(
            len(powers), len(labels)))
    columns = {cs.MEASUREMENT_VOLTS_COLUMN: np.asarray(voltages, dtype=float)}
    for label, power in zip(labels, powers):
        columns[label] = np.asarray(power, dtype=float)
    return pd.DataFrame(columns)


def write_coefficient_table(rows: Sequence[CalibrationRow], path: str) -> None:
    coefficient_frame(rows).to_csv(path, index=False, lineterminator='\n',
                                   float_format=cs.TABLE_FLOAT_FORMAT)
    LOGGER.info("Wrote coefficients of %s lasers to %s.", len(rows), path)


def write_measurement_table(voltages: np.ndarray, powers: Sequence[np.ndarray],
                            labels: Sequence[str], path: str) -> None:
    frame = measurement_frame(voltages, powers, labels)
    frame.to_csv(path, index=False, lineterminator='\n',
                 float_format=cs.TABLE_FLOAT_FORMAT)
    LOGGER.info("Wrote %s measurements of %s channels to %s.",
                len(frame), len(labels), path)


def read_coefficient_table(path: str) -> List[CalibrationRow]:
    """Load a coefficient table for looking up laser input voltages.

    :raises InvalidArgument: The file doesn't look like a coefficient table.
    """
    frame = pd.read_csv(path, dtype={'name': str})
    if list(frame.columns) != cs.COEFFICIENT_COLUMNS:
        raise InvalidArgument("{} is not a coefficient table. Columns are: "
                              "{}".format(path, ', '.join(frame.columns)))
    return [CalibrationRow(int(record['index']), int(record['nm']),
                           str(record['name']),
                           TransferCoefficients(*(float(record[c]) for c in
                                                  cs.COEFFICIENT_COLUMNS[3:])))
            for record in frame.to_dict('records')]


def write_archive(path: str, rows: Sequence[CalibrationRow],
                  voltages: np.ndarray, powers: Sequence[np.ndarray],
                  labels: Sequence[str],
                  splines: Sequence[LookupSplines] = None) -> None:
    """Store coefficients and raw data in a single ``.npz`` file.

    The splines of the i-th row are stored as breakpoints
    ``spline_<direction>_x<i>`` and coefficients ``spline_<direction>_c<i>``,
    direction being "fwd" or "inv".
    """
    arrays = {}  # type: Dict[str, np.ndarray]
    for laser, pair in enumerate(splines or []):
        for direction, spline in zip(SPLINE_DIRECTIONS, pair):
            if spline is not None:
                arrays['spline_{}_x{}'.format(direction, laser)] = spline.x
                arrays['spline_{}_c{}'.format(direction, laser)] = spline.c
    np.savez(path,
             index=np.array([row.index for row in rows]),
             nm=np.array([row.nm for row in rows]),
             name=np.array([row.name for row in rows]),
             coefficients=np.array([list(row.coefficients) for row in rows]),
             volts=np.asarray(voltages, dtype=float),
             mw=np.array([np.asarray(p, dtype=float) for p in powers]),
             labels=np.array(labels),
             **arrays)


def read_archive_splines(path: str) -> List[LookupSplines]:
    """Load the lookup splines of every laser in an archive.

    Directions that weren't stored come back as None.
    """
    with np.load(path) as archive:
        splines = []
        for laser in range(archive['index'].size):
            pair = []
            for direction in SPLINE_DIRECTIONS:
                x_key = 'spline_{}_x{}'.format(direction, laser)
                if x_key in archive.files:
                    pair.append(interpolate.PPoly(
                        archive['spline_{}_c{}'.format(direction, laser)],
                        archive[x_key]))
                else:
                    LOGGER.debug("No %s spline of laser %s in %s.", direction,
                                 laser, path)
                    pair.append(None)
            splines.append(LookupSplines(*pair))
    return splines


def write_tables(rows: Sequence[CalibrationRow], voltages: np.ndarray,
                 powers: Sequence[np.ndarray], labels: Sequence[str],
                 directory: str, coefficient_name: str,
                 measurement_name: str,
                 splines: Sequence[LookupSplines] = None) -> List[str]:
    """Write all tables of a calibration run into ``directory``.

    File names are given without suffix.  Lookup splines only go into the
    archive.

    :returns: The paths written to.
    """
    os.makedirs(directory, exist_ok=True)
    coefficient_base = os.path.join(directory, coefficient_name)
    measurement_base = os.path.join(directory, measurement_name)
    write_archive(coefficient_base + '.npz', rows, voltages, powers, labels,
                  splines)
    write_coefficient_table(rows, coefficient_base + '.csv')
    write_measurement_table(voltages, powers, labels, measurement_base + '.csv')
    return [coefficient_base + '.npz', coefficient_base + '.csv',
            measurement_base + '.csv']
