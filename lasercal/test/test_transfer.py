"""Tests for the laser transfer function.

This module is not to be run manually but will instead be found and invoked
automatically by the Pytest test suite.
"""
import numpy as np
import pytest

from lasercal.analysis import transfer
from lasercal.analysis.transfer import TransferCoefficients
from lasercal.errors import InvalidArgument

COEFFS = TransferCoefficients(B=0.2, M=1.0, V0=0.4, P=1.5, Vt=2.5)


def test_power_branch_matches_formula():
    """Below the transition voltage, it's the clamped power function."""
    volts = np.array([0., 0.4, 1., 2.5])
    expected = 0.2 + np.maximum(0, volts - 0.4)**1.5
    assert np.allclose(transfer.forward(COEFFS, volts), expected)


def test_linear_branch_is_tangent():
    """Above the transition voltage, it's the tangent at Vt."""
    y0 = 0.2 + 2.1**1.5
    s0 = 1.5 * 2.1**0.5
    volts = np.array([3., 4., 5.])
    assert np.allclose(transfer.forward(COEFFS, volts), y0 + s0 * (volts - 2.5))


def test_round_trip_in_power_domain():
    volts = np.linspace(COEFFS.V0, COEFFS.Vt, 17)
    milliwatts = transfer.forward(COEFFS, volts)
    assert np.allclose(transfer.inverse(COEFFS, milliwatts), volts)


def test_round_trip_in_linear_domain():
    volts = np.linspace(2.6, 5.5, 11)
    milliwatts = transfer.forward(COEFFS, volts)
    assert np.allclose(transfer.inverse(COEFFS, milliwatts), volts)


def test_transfer_mode_switch():
    volts = np.array([1., 3.])
    milliwatts = transfer.transfer(COEFFS, volts)
    assert np.allclose(transfer.transfer(COEFFS, milliwatts, mode='inverse'), volts)


def test_continuity_at_transition():
    """Value and slope don't jump at Vt."""
    eps = 1e-7
    below = transfer.forward(COEFFS, COEFFS.Vt - eps)
    above = transfer.forward(COEFFS, COEFFS.Vt + eps)
    assert float(below) == pytest.approx(float(above), abs=1e-5)
    slope_below = transfer.derivative(COEFFS, COEFFS.Vt - eps)
    slope_above = transfer.derivative(COEFFS, COEFFS.Vt + eps)
    assert float(slope_below) == pytest.approx(float(slope_above), abs=1e-5)


def test_derivative_matches_finite_differences():
    volts = np.array([1., 2., 3.5])
    step = 1e-6
    numeric = (transfer.forward(COEFFS, volts + step)
               - transfer.forward(COEFFS, volts - step)) / (2 * step)
    assert np.allclose(transfer.derivative(COEFFS, volts), numeric, rtol=1e-5)


def test_output_keeps_input_shape():
    volts = np.linspace(0, 5, 12).reshape(3, 4)
    assert transfer.forward(COEFFS, volts).shape == (3, 4)


def test_clamped_below_shift():
    """No NaN for voltages below V0, even with a fractional exponent."""
    result = transfer.forward(COEFFS, [0., 0.1, 0.39])
    assert np.allclose(result, 0.2)


def test_inverse_below_baseline_gives_shift():
    assert np.allclose(transfer.inverse(COEFFS, [0., 0.1]), COEFFS.V0)


def test_empty_input():
    assert transfer.forward(COEFFS, []).size == 0
    assert transfer.forward([], [1., 2.]).size == 0
    assert transfer.inverse(COEFFS, np.array([])).size == 0


def test_wrong_number_of_coefficients():
    with pytest.raises(InvalidArgument):
        transfer.forward([1., 2., 3., 4.], [1.])
    with pytest.raises(InvalidArgument):
        transfer.forward([1., 2., 3., 4., 5., 6.], [1.])


@pytest.mark.parametrize('values', [[-1.], [np.nan], [np.inf], [1 + 1j]])
def test_invalid_values(values):
    with pytest.raises(InvalidArgument):
        transfer.forward(COEFFS, values)


def test_invalid_coefficients():
    with pytest.raises(InvalidArgument):
        transfer.forward([0.2, -1., 0.4, 1.5, 2.5], [1.])


def test_invalid_mode():
    with pytest.raises(InvalidArgument):
        transfer.transfer(COEFFS, [1.], mode='sideways')


def test_invalid_argument_is_value_error():
    """Callers may catch the builtin ValueError instead."""
    with pytest.raises(ValueError):
        transfer.forward(COEFFS, [-1.])
