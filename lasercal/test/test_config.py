"""Tests for reading the parameter file.

This module is not to be run manually but will instead be found and invoked
automatically by the Pytest test suite.
"""
import pytest

from lasercal import config
from lasercal.controller.strategies import MeasurementMethod
from lasercal.errors import InvalidArgument


def write_params(tmp_path, text: str) -> str:
    path = tmp_path / 'lasercal.csv'
    path.write_text(text)
    return str(path)


def test_defaults():
    settings = config.parse_parameters({})
    assert settings.table_dir == '.'
    assert settings.coefficient_table == 'lasercoef'
    assert settings.power_table == 'laserpower'
    assert settings.laser_tester == 'LaserTester1'
    assert settings.input == 50
    assert settings.volt_range == (0., 5.)
    assert settings.measurement == MeasurementMethod.MANUAL
    assert settings.channels == 1
    assert settings.ttl_invert is False
    assert settings.max_retries is None
    assert settings.pm100d_magnitudes == (0.01, 0.1, 1., 10., 100., 1000.)
    assert settings.pm100d_initial_magnitude == 0.01
    assert settings.pm100d_threshold == pytest.approx(0.95)
    assert settings.pm100d_accumulator == 'AvgPMvolts'
    assert settings.meter_coefficients == {}


def test_load_file(tmp_path):
    path = write_params(tmp_path, "\n".join([
        "# Bench 2 setup",
        "tabledir,/tmp/calibration",
        "input,[0 2.5 5]",
        "range,[0;5]",
        "measurement,PM100D",
        "chans, 2",
        "ttlinvert,1",
        "max_retries,3",
        "pm100d_initmagnitude,0.1",
        "pm100d_coef_505nm,4.5",
        "pm100d_coef_633nm,3.9",
        ""]))
    settings = config.load_config(path)
    assert settings.table_dir == '/tmp/calibration'
    assert settings.input == (0., 2.5, 5.)
    assert settings.volt_range == (0., 5.)
    assert settings.measurement == MeasurementMethod.PM100D
    assert settings.channels == 2
    assert settings.ttl_invert is True
    assert settings.max_retries == 3
    assert settings.pm100d_initial_magnitude == pytest.approx(0.1)
    assert settings.meter_coefficients == {505: 4.5, 633: 3.9}


def test_empty_file(tmp_path):
    assert config.read_parameter_file(write_params(tmp_path, '')) == {}


def test_duplicate_names(tmp_path):
    path = write_params(tmp_path, "chans,1\nchans,2\n")
    with pytest.raises(InvalidArgument):
        config.read_parameter_file(path)


def test_single_voltage_list():
    assert config.parse_parameters({'input': '[2.5]'}).input == (2.5,)


def test_several_voltages_without_brackets():
    assert config.parse_parameters({'input': '1 2 3'}).input == (1., 2., 3.)


def test_infinite_retries():
    assert config.parse_parameters({'max_retries': 'inf'}).max_retries is None


@pytest.mark.parametrize('raw', [
    {'frobnicate': '1'},
    {'input': '0'},
    {'input': '2.5'},
    {'range': '5 0'},
    {'range': '0 7'},
    {'measurement': 'guess'},
    {'chans': '0'},
    {'ttlinvert': '2'},
    {'max_retries': '-1'},
    {'pm100d_threshold': '0'},
    {'pm100d_threshold': '1.5'},
    {'pm100d_timer': '-1'},
    {'pm100d_magnitudes': ''},
    {'pm100d_initmagnitude': '0.5'},
    {'pm100d_coef_505nm': '0'},
    {'pm100d_coef_505nm': 'abc'},
    {'coefftable': ''},
])
def test_invalid_parameters(raw):
    with pytest.raises(InvalidArgument):
        config.parse_parameters(raw)


def test_initial_magnitude_follows_custom_magnitudes():
    settings = config.parse_parameters({'pm100d_magnitudes': '0.1 1 10',
                                        'measurement': 'pm100d'})
    assert settings.pm100d_magnitudes == (0.1, 1., 10.)
    assert settings.pm100d_initial_magnitude == 0.1


def test_explicit_initial_magnitude():
    settings = config.parse_parameters({'pm100d_magnitudes': '0.1 1 10',
                                        'pm100d_initmagnitude': '1'})
    assert settings.pm100d_initial_magnitude == 1.
