"""Plot measured laser power against the fitted transfer function."""
import logging
import os
from typing import List, Sequence

import matplotlib.pyplot as plt
import numpy as np

from .. import constants as cs
from . import transfer
from .tables import CalibrationRow

LOGGER = logging.getLogger('lasercal.analysis.plotting')

MODEL_STEPS = 1000
"""Evaluate the fitted model at this many steps across the voltage range."""


def plot_calibration(row: CalibrationRow, voltages: np.ndarray,
                     powers: Sequence[np.ndarray],
                     volt_range: cs.VoltRange = cs.INPUT_VOLT_RANGE) -> plt.Figure:
    """Draw the data of all channels of a laser and its fitted model."""
    figure, axes = plt.subplots()
    for channel, power in enumerate(powers):
        axes.scatter(voltages, power, color='C0',
                     label='Data' if channel == 0 else '_nolegend_')
    model_volts = np.linspace(volt_range[0], volt_range[1], MODEL_STEPS + 1)
    axes.plot(model_volts, transfer.forward(row.coefficients, model_volts),
              color='C2', linewidth=2, label='Model')
    axes.set_box_aspect(1)
    axes.grid(True)
    axes.tick_params(direction='out')
    axes.set_xlabel('Input Volts')
    axes.set_ylabel('Emission power (mW)')
    axes.set_title('Laser{}_{}nm'.format(row.index, row.nm))
    axes.legend(loc='upper left')
    return figure


def plot_batch(rows: Sequence[CalibrationRow], voltages: np.ndarray,
               records: Sequence[Sequence[np.ndarray]],
               volt_range: cs.VoltRange = cs.INPUT_VOLT_RANGE,
               directory: str = None) -> List[plt.Figure]:
    """Plot every laser of a calibration run.

    :param records: Measured powers, indexed by laser, then by channel.
    :param directory: If given, save each figure there as PNG.
    """
    figures = []
    for row, powers in zip(rows, records):
        figure = plot_calibration(row, voltages, powers, volt_range)
        if directory:
            path = os.path.join(directory, 'Laser{}_{}nm.png'.format(row.index, row.nm))
            figure.savefig(path)
            LOGGER.info("Saved plot to %s.", path)
        figures.append(figure)
    return figures
