"""Tests for writing and reading calibration tables and plots.

This module is not to be run manually but will instead be found and invoked
automatically by the Pytest test suite.
"""
import os

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt  # pylint: disable=wrong-import-position
import numpy as np  # pylint: disable=wrong-import-position
import pytest  # pylint: disable=wrong-import-position

from lasercal.analysis import plotting, splines, tables  # pylint: disable=wrong-import-position
from lasercal.analysis.tables import CalibrationRow  # pylint: disable=wrong-import-position
from lasercal.analysis.transfer import TransferCoefficients  # pylint: disable=wrong-import-position
from lasercal.errors import InvalidArgument  # pylint: disable=wrong-import-position

ROWS = [CalibrationRow(0, 505, 'green', TransferCoefficients(0.2, 1., 0.4, 1.5, 2.5)),
        CalibrationRow(1, 633, 'red', TransferCoefficients(0.1, 2., 0.5, 1.2, 3.))]
VOLTS = np.array([0., 2.5, 5.])
POWERS = [np.array([1., 3.2, 6.1]), np.array([0.5, 1.5, 2.5])]
LABELS = ['Laser0_505nm_ch0_green', 'Laser1_633nm_ch0_red']


def test_coefficient_table_format(tmp_path):
    path = str(tmp_path / 'coef.csv')
    tables.write_coefficient_table(ROWS, path)
    with open(path) as file:
        lines = file.read().split('\n')
    assert lines[0] == 'index,nm,name,B,M,V0,P,Vt'
    assert lines[1] == ('0,505,green,0.200000000,1.000000000,0.400000000,'
                        '1.500000000,2.500000000')


def test_coefficient_table_round_trip(tmp_path):
    path = str(tmp_path / 'coef.csv')
    tables.write_coefficient_table(ROWS, path)
    assert tables.read_coefficient_table(path) == ROWS


def test_read_foreign_table(tmp_path):
    path = str(tmp_path / 'other.csv')
    with open(path, 'w') as file:
        file.write('a,b\n1,2\n')
    with pytest.raises(InvalidArgument):
        tables.read_coefficient_table(path)


def test_measurement_table_format(tmp_path):
    path = str(tmp_path / 'power.csv')
    tables.write_measurement_table(VOLTS, POWERS, LABELS, path)
    with open(path) as file:
        lines = file.read().split('\n')
    assert lines[0] == 'Volts,Laser0_505nm_ch0_green,Laser1_633nm_ch0_red'
    assert lines[2] == '2.500000000,3.200000000,1.500000000'


def test_measurement_labels_must_match():
    with pytest.raises(InvalidArgument):
        tables.measurement_frame(VOLTS, POWERS, LABELS[:1])


def test_write_tables(tmp_path):
    directory = str(tmp_path / 'calibration')
    paths = tables.write_tables(ROWS, VOLTS, POWERS, LABELS, directory,
                                'lasercoef', 'laserpower')
    assert [os.path.basename(p) for p in paths] == [
        'lasercoef.npz', 'lasercoef.csv', 'laserpower.csv']
    assert all(os.path.isfile(p) for p in paths)
    archive = np.load(paths[0])
    assert list(archive['name']) == ['green', 'red']
    assert np.allclose(archive['coefficients'][1], list(ROWS[1].coefficients))
    assert np.allclose(archive['mw'], POWERS)
    assert list(archive['labels']) == LABELS


def test_archived_splines(tmp_path):
    lookups = [splines.fit_splines(VOLTS, p) for p in POWERS]
    paths = tables.write_tables(ROWS, VOLTS, POWERS, LABELS, str(tmp_path),
                                'lasercoef', 'laserpower', splines=lookups)
    loaded = tables.read_archive_splines(paths[0])
    assert len(loaded) == 2
    samples = np.linspace(0, 5, 21)
    for original, restored in zip(lookups, loaded):
        assert np.allclose(restored.forward(samples), original.forward(samples))
        assert np.allclose(restored.inverse([1.5, 2.]), original.inverse([1.5, 2.]))


def test_archive_without_splines(tmp_path):
    paths = tables.write_tables(ROWS, VOLTS, POWERS, LABELS, str(tmp_path),
                                'lasercoef', 'laserpower')
    assert tables.read_archive_splines(paths[0]) == [(None, None), (None, None)]


def test_plot_batch(tmp_path):
    figures = plotting.plot_batch(ROWS, VOLTS, [[p] for p in POWERS],
                                  directory=str(tmp_path))
    assert len(figures) == 2
    assert os.path.isfile(str(tmp_path / 'Laser1_633nm.png'))
    axes = figures[0].axes[0]
    assert axes.get_title() == 'Laser0_505nm'
    legend = [text.get_text() for text in axes.get_legend().get_texts()]
    assert sorted(legend) == ['Data', 'Model']
    for figure in figures:
        plt.close(figure)


def test_plot_several_channels():
    figure = plotting.plot_calibration(ROWS[0], VOLTS, POWERS)
    legend = [text.get_text() for text in figure.axes[0].get_legend().get_texts()]
    assert sorted(legend) == ['Data', 'Model']
    plt.close(figure)
