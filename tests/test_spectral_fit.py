# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Tests for the Mw and apparent stress fit.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import numpy as np
import pytest
from codaspec.csp_errors import (
    InsufficientDataError, InvalidParameterError, FitDidNotConverge)
from codaspec.csp_data_types import FrequencyBand, BandMeasurement
from codaspec.csp_source_model import SourceSpectrumModel
from codaspec.csp_spectral_fit import fit, fit_events, synthetic_spectrum


def _bands_around_corner(source_params, mw, stress, nbands=15):
    model = SourceSpectrumModel(source_params, phase='Lg')
    log_fc = np.log10(model.corner_frequency(mw, stress))
    freqs = np.logspace(log_fc - 1.5, log_fc + 1.5, nbands)
    return [FrequencyBand(f / 1.1, f * 1.1) for f in freqs]


@pytest.mark.parametrize('mw, stress', [
    (2., 1.), (5., 1.), (5., 5.), (7., 5.), (9., 10.)])
def test_fit_synthetic_spectrum(source_params, path_params, config, mw,
                                stress):
    bands = _bands_around_corner(source_params, mw, stress)
    spectrum = synthetic_spectrum(bands, mw, stress, 'Lg', source_params)
    result = fit('ev1', spectrum, 'Lg', source_params, path_params,
                 config=config)
    assert result.converged
    assert result.event_id == 'ev1'
    assert result.data_count == 15
    assert result.mw == pytest.approx(mw, abs=1e-3)
    assert result.apparent_stress == pytest.approx(stress, rel=1e-2)
    assert result.misfit < 1e-4
    model = SourceSpectrumModel(source_params, phase='Lg')
    assert result.corner_frequency == pytest.approx(
        model.corner_frequency(mw, stress), rel=1e-2)
    assert result.log_m0 == pytest.approx(1.5 * mw + 16.1, abs=2e-3)
    assert result.log_mdac_energy == pytest.approx(
        np.log10(model.mdac_energy(mw, stress)), abs=1e-2)


def test_fit_p_spectrum_corner_frequency(source_params, config):
    params = source_params._asdict()
    params.update(zeta=1.5)
    source_params = type(source_params)(**params)
    bands = _bands_around_corner(source_params, 4., 1.)
    spectrum = synthetic_spectrum(bands, 4., 1., 'Pg', source_params)
    result = fit('ev1', spectrum, 'Pg', source_params, config=config)
    assert result.mw == pytest.approx(4., abs=1e-3)
    s_model = SourceSpectrumModel(source_params, phase='Lg')
    # corner of the fitted P phase, not the S-wave corner
    assert result.corner_frequency == pytest.approx(
        1.5 * s_model.corner_frequency(4., 1.), rel=1e-2)

def test_fit_noisy_spectrum(source_params, config):
    mw, stress = 5., 5.
    bands = _bands_around_corner(source_params, mw, stress, nbands=20)
    spectrum = synthetic_spectrum(bands, mw, stress, 'Lg', source_params)
    rng = np.random.default_rng(42)
    noise = rng.normal(0, 0.05, len(bands))
    measurements = {
        band: BandMeasurement(ampl + n, 0.05, 5)
        for (band, ampl), n in zip(spectrum.items(), noise)}
    result = fit('ev1', measurements, 'Lg', source_params, config=config)
    assert result.converged
    assert result.data_count == 100
    assert result.mw == pytest.approx(mw, abs=0.1)
    assert result.misfit > 0
    assert result.mw_sd > 0
    assert result.mw_1_min < result.mw < result.mw_1_max
    assert result.mw_2_min < result.mw_1_min
    assert result.apparent_stress_sd > 0
    assert (
        result.apparent_stress_2_min < result.apparent_stress_1_min <
        result.apparent_stress < result.apparent_stress_1_max <
        result.apparent_stress_2_max)
    # bounds are symmetric in log10 units
    assert (
        np.log10(result.apparent_stress_1_max / result.apparent_stress) ==
        pytest.approx(
            np.log10(result.apparent_stress / result.apparent_stress_1_min)))
    assert 0 < result.corner_frequency_sd < result.corner_frequency


def test_fit_does_not_depend_on_band_order(source_params, config):
    bands = _bands_around_corner(source_params, 4., 1.)
    spectrum = synthetic_spectrum(bands, 4., 1., 'Lg', source_params)
    shuffled = dict(reversed(list(spectrum.items())))
    result1 = fit('ev1', spectrum, 'Lg', source_params, config=config)
    result2 = fit('ev1', shuffled, 'Lg', source_params, config=config)
    assert result1 == result2


def test_fit_plain_frequency_keys(source_params, config):
    bands = _bands_around_corner(source_params, 4., 1.)
    spectrum = synthetic_spectrum(bands, 4., 1., 'Lg', source_params)
    by_freq = {
        band.center_frequency: ampl for band, ampl in spectrum.items()}
    result = fit('ev1', by_freq, 'Lg', source_params, config=config)
    assert result.mw == pytest.approx(4., abs=1e-3)


def test_fit_insufficient_data(source_params, config):
    with pytest.raises(InsufficientDataError):
        fit('ev1', {FrequencyBand(1., 2.): 20.}, 'Lg', source_params,
            config=config)
    # non-positive and non-finite amplitudes are not usable
    spectrum = {
        FrequencyBand(1., 2.): 20., FrequencyBand(2., 3.): -1.,
        FrequencyBand(3., 4.): np.nan}
    with pytest.raises(InsufficientDataError):
        fit('ev1', spectrum, 'Lg', source_params, config=config)


def test_fit_invalid_weights(source_params, config):
    bands = _bands_around_corner(source_params, 4., 1., nbands=5)
    spectrum = synthetic_spectrum(bands, 4., 1., 'Lg', source_params)

    def zero_weights(measurements):
        return {key: 0. for key in measurements}

    with pytest.raises(InvalidParameterError):
        fit('ev1', spectrum, 'Lg', source_params, weight_fn=zero_weights,
            config=config)


def test_fit_did_not_converge(source_params, config):
    bands = _bands_around_corner(source_params, 5., 5.)
    spectrum = synthetic_spectrum(bands, 5., 5., 'Lg', source_params)
    config.fit_iteration_budget = 1
    with pytest.raises(FitDidNotConverge) as excinfo:
        fit('ev1', spectrum, 'Lg', source_params, config=config)
    partial = excinfo.value.partial_result
    assert partial is not None
    assert not partial.converged
    # best-effort result from grid search
    assert partial.mw == pytest.approx(5., abs=0.2)
    assert np.isfinite(partial.mw_sd)
    assert partial.apparent_stress_1_min <= partial.apparent_stress
    assert np.isfinite(partial.corner_frequency_sd)


def test_fit_did_not_converge_without_grid_search(source_params, config):
    bands = _bands_around_corner(source_params, 5., 5.)
    spectrum = synthetic_spectrum(bands, 5., 5., 'Lg', source_params)
    config.fit_iteration_budget = 1
    config.grid_search_fallback = False
    with pytest.raises(FitDidNotConverge) as excinfo:
        fit('ev1', spectrum, 'Lg', source_params, config=config)
    partial = excinfo.value.partial_result
    assert not partial.converged
    assert np.isnan(partial.mw_sd)


def test_fit_events_isolates_failures(source_params, config):
    spectra = {}
    for event, mw in (('ev1', 4.), ('ev3', 5.)):
        bands = _bands_around_corner(source_params, mw, 1.)
        spectra[event] = synthetic_spectrum(
            bands, mw, 1., 'Lg', source_params)
    spectra['ev2'] = {FrequencyBand(1., 2.): 20.}
    batch = fit_events(spectra, 'Lg', source_params, config=config)
    assert list(batch.results) == ['ev1', 'ev3']
    assert batch.results['ev1'].mw == pytest.approx(4., abs=1e-3)
    assert batch.results['ev3'].mw == pytest.approx(5., abs=1e-3)
    assert len(batch.failures) == 1
    assert batch.failures[0].unit == 'ev2'
    assert isinstance(batch.failures[0].error, InsufficientDataError)
    assert not batch.cancelled


def test_fit_events_rejects_zero_tolerance(source_params, config):
    bands = _bands_around_corner(source_params, 4., 1.)
    spectra = {
        'ev1': synthetic_spectrum(bands, 4., 1., 'Lg', source_params)}
    config.convergence_tolerance = 0.
    batch = fit_events(spectra, 'Lg', source_params, config=config)
    assert not batch.results
    assert len(batch.failures) == 1
    assert isinstance(batch.failures[0].error, InvalidParameterError)

def test_fit_events_parallel_matches_serial(source_params, config):
    spectra = {}
    for n, mw in enumerate((3., 3.5, 4., 4.5, 5.)):
        bands = _bands_around_corner(source_params, mw, 2.)
        spectra[f'ev{n}'] = synthetic_spectrum(
            bands, mw, 2., 'Lg', source_params)
    serial = fit_events(spectra, 'Lg', source_params, config=config)
    config.n_workers = 4
    parallel = fit_events(spectra, 'Lg', source_params, config=config)
    assert list(parallel.results) == list(serial.results)
    np.testing.assert_equal(parallel.results, serial.results)
