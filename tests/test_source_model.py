# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Tests for the source spectrum model.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import math
import numpy as np
import pytest
from codaspec.csp_errors import (
    InvalidParameterError, NumericDivergenceError)
from codaspec.csp_source_model import (
    SourceSpectrumModel, amplitude, k_constant, energy_constant)
from codaspec.csp_util import mag_to_moment, moment_to_mag


def test_magnitude_moment_conversion():
    assert mag_to_moment(0) == pytest.approx(10**9.1)
    assert mag_to_moment(6.0) == pytest.approx(10**18.1)
    assert moment_to_mag(mag_to_moment(4.3)) == pytest.approx(4.3)


def test_k_constant(source_params):
    p = source_params
    expected = 16 * math.pi / (
        p.beta_s**2 * (0.44**2 / p.alpha_s**5 + 0.6**2 / p.beta_s**5))
    assert k_constant(p) == pytest.approx(expected)


def test_corner_frequency_value(source_params):
    model = SourceSpectrumModel(source_params, phase='Lg')
    assert model.corner_frequency(5.0, 1.0) == pytest.approx(0.836, rel=5e-3)


def test_corner_frequency_scaling(source_params):
    model = SourceSpectrumModel(source_params, phase='Lg')
    fc = model.corner_frequency(5.0, 1.0)
    # fc scales as M0**(-1/3) and as sigma**(1/3)
    assert model.corner_frequency(6.0, 1.0) == pytest.approx(fc * 10**-0.5)
    assert model.corner_frequency(5.0, 8.0) == pytest.approx(2 * fc)
    assert model.apparent_stress_from_corner(5.0, fc) == pytest.approx(1.0)


def test_p_corner_frequency(source_params):
    params = source_params._replace(zeta=1.5)
    model_s = SourceSpectrumModel(params, phase='Lg')
    model_p = SourceSpectrumModel(params, phase='Pg')
    assert model_p.corner_frequency(4.0, 2.0) == pytest.approx(
        1.5 * model_s.corner_frequency(4.0, 2.0))


def test_apparent_stress_scaling(source_params):
    model = SourceSpectrumModel(source_params, phase='Lg')
    mw_ref = moment_to_mag(source_params.m0_ref)
    assert model.apparent_stress(mw_ref) == pytest.approx(0.3)
    # psi = 0.25: a factor 10**4 in moment gives a factor 10 in stress
    mw = moment_to_mag(source_params.m0_ref * 1e4)
    assert model.apparent_stress(mw) == pytest.approx(3.0)
    assert model.apparent_stress(mw, 1.5) == 1.5


def test_log_amplitude_shape(source_params):
    model = SourceSpectrumModel(source_params, phase='Lg')
    mw = 5.0
    log_m0_dyne = 1.5 * mw + 9.1 + 7
    # flat at low frequency
    assert model.log_amplitude(1e-6, mw, 1.0) == pytest.approx(
        log_m0_dyne, abs=1e-6)
    # half amplitude (squared) at the corner frequency
    fc = model.corner_frequency(mw, 1.0)
    assert model.log_amplitude(fc, mw, 1.0) == pytest.approx(
        log_m0_dyne - math.log10(2))
    # omega-square decay at high frequency
    high = model.log_amplitude(np.array([100 * fc, 1000 * fc]), mw, 1.0)
    assert high[0] - high[1] == pytest.approx(2, abs=1e-3)


def test_spectrum_func_matches_log_amplitude(source_params):
    model = SourceSpectrumModel(source_params, phase='Lg')
    freqs = np.logspace(-2, 1, 20)
    spectrum = model.spectrum_func(freqs)
    np.testing.assert_allclose(
        spectrum(4.5, math.log10(3.)),
        model.log_amplitude(freqs, 4.5, 3.), rtol=1e-12)


def test_mdac_energy(source_params):
    model = SourceSpectrumModel(source_params, phase='Lg')
    expected = mag_to_moment(5.0) * 2e6 / (2700. * 3500.**2)
    assert model.mdac_energy(5.0, 2.0) == pytest.approx(expected)
    assert model.observed_apparent_stress(expected, 5.0) == pytest.approx(2.0)


def test_energy_constant_integrates_to_mdac_energy(source_params):
    model = SourceSpectrumModel(source_params, phase='Lg')
    mw, stress = 5.0, 1.0
    omega_c = 2 * math.pi * model.corner_frequency(mw, stress)
    analytic = (
        energy_constant(source_params) * mag_to_moment(mw)**2 *
        omega_c**3 * math.pi / 4)
    assert analytic == pytest.approx(model.mdac_energy(mw, stress))


def test_path_effects(source_params, path_params):
    freq = np.array([0.5, 1., 2.])
    distance = 2e5
    model = SourceSpectrumModel(source_params, path_params, phase='Lg')
    log_displ = amplitude(
        freq, 5., 1., 'Lg', source_params, path_params, distance=distance)
    geom = (
        -math.log10(path_params.dist_crit) +
        1.1 * math.log10(path_params.dist_crit / distance))
    q = 210. * freq**0.65
    att = -math.pi * freq * distance * math.log10(math.e) / (q * 7900.)
    expected = (
        model.log_source_coeff + model.log_moment_rate(freq, 5., 1.) +
        geom + att)
    np.testing.assert_allclose(log_displ, expected)
    # attenuation removes more energy at high frequency
    assert np.all(np.diff(log_displ - model.log_moment_rate(freq, 5., 1.)) < 0)


def test_geometrical_spreading_is_continuous(source_params, path_params):
    params = path_params._replace(dist_crit=1e5)
    model = SourceSpectrumModel(source_params, params, phase='Lg')
    below = model.geometrical_spreading(1e5 * (1 - 1e-9))
    at = model.geometrical_spreading(1e5)
    assert below == pytest.approx(at)


def test_source_amplitude_without_distance(source_params):
    model = SourceSpectrumModel(source_params, phase='Lg')
    assert amplitude(1., 5., 1., 'Lg', source_params) == pytest.approx(
        model.log_amplitude(1., 5., 1.))


@pytest.mark.parametrize('freq', [0., -1., np.nan, [1., 0.]])
def test_invalid_frequency(source_params, freq):
    model = SourceSpectrumModel(source_params, phase='Lg')
    with pytest.raises(InvalidParameterError):
        model.log_amplitude(freq, 5., 1.)


@pytest.mark.parametrize('stress', [0., -1., np.inf])
def test_invalid_apparent_stress(source_params, stress):
    with pytest.raises(InvalidParameterError):
        amplitude(1., 5., stress, 'Lg', source_params)


def test_invalid_phase(source_params):
    with pytest.raises(InvalidParameterError):
        SourceSpectrumModel(source_params, phase='Rg')


def test_path_effects_require_path_params(source_params):
    model = SourceSpectrumModel(source_params, phase='Lg')
    with pytest.raises(InvalidParameterError):
        model.log_displacement(1., 5., 1., distance=1e5)


def test_invalid_distance(source_params, path_params):
    model = SourceSpectrumModel(source_params, path_params, phase='Lg')
    with pytest.raises(InvalidParameterError):
        model.log_displacement(1., 5., 1., distance=0.)


def test_non_finite_result_is_not_hidden(source_params):
    model = SourceSpectrumModel(source_params, phase='Lg')
    with np.errstate(all='ignore'):
        with pytest.raises(NumericDivergenceError):
            model.log_moment_rate(1., np.inf, 1.)
