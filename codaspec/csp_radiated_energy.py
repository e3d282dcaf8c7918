# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Compute radiated energy from spectral integration.

The squared moment-rate spectrum, multiplied by the cube of the angular
frequency, is integrated over ln(frequency) with the trapezoidal rule
between the lowest and the highest band. The missing spectral tails are
added analytically, using the single-corner source model scaled to the
observed amplitude at the first and the last band.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import math
import logging
import numpy as np
from scipy.integrate import trapezoid
from codaspec.csp_errors import InsufficientDataError, check_finite
from codaspec.csp_data_types import EnergyInfo
from codaspec.csp_source_model import SourceSpectrumModel
from codaspec.csp_util import (
    usable_spectrum, mag_to_moment, DYNE_LOG10_ADJUSTMENT)
from codaspec.csp_batch import run_batch
from codaspec.csp_config import default_config
logger = logging.getLogger(__name__.rsplit('.', maxsplit=1)[-1])


def _partial_integral(x):
    r"""
    Integral of the normalized single-corner energy spectrum.

    .. math::

        I(x) = \int_0^x \frac{u^2}{(1+u^2)^2} du =
               \frac{1}{2} \left( \arctan x - \frac{x}{1+x^2} \right)

    :math:`I(\infty) = \pi/4`.
    """
    return 0.5 * (np.arctan(x) - x / (1. + x**2))


def _spectral_integral(freqs, log_moment_rate, energy_coeff):
    """
    Trapezoidal integral of C w^3 M(w)^2 over ln(f).

    Returned value is in J.
    """
    omega = 2 * math.pi * freqs
    # work in log units to avoid overflow for large moments
    log_integrand = (
        math.log10(energy_coeff) + 3 * np.log10(omega) + 2 * log_moment_rate)
    log_ref = np.max(log_integrand)
    integrand = 10**(log_integrand - log_ref)
    return trapezoid(integrand, np.log(freqs)) * 10**log_ref


def _tails(model, freqs, log_moment_rate, mw_fit, apparent_stress):
    """
    Energy (J) below the first and above the last band.

    The model spectrum at (mw_fit, apparent_stress) is scaled to the
    observed amplitude at the first and the last band. ``freqs`` are the
    observed frequencies of the model phase.
    """
    model_log_mr = model.log_moment_rate(
        freqs[[0, -1]], mw_fit, apparent_stress)
    scale = 10**(2 * (log_moment_rate[[0, -1]] - model_log_mr))
    # tails are integrated on the S-wave corner frequency axis
    omega_c = model.angular_corner_frequency(mw_fit, apparent_stress)
    x_low, x_high = (
        2 * math.pi * freqs[[0, -1]] / model.corner_factor / omega_c)
    # energy of the whole model spectrum is norm * pi/4
    norm = model.energy_coeff * mag_to_moment(mw_fit)**2 * omega_c**3
    low_tail = scale[0] * norm * _partial_integral(x_low)
    high_tail = scale[1] * norm * (math.pi / 4 - _partial_integral(x_high))
    return low_tail, high_tail


def total_energy(band_to_log_amplitude, mw_fit, apparent_stress,
                 source_params, phase='Lg', label=''):
    """
    Compute radiated energy (in J) and apparent stress (in MPa).

    :param band_to_log_amplitude: mapping from frequency band (or plain
        frequency in Hz) to log10 amplitude in dyne-cm, as float or
        :class:`codaspec.csp_data_types.BandMeasurement`
    :param mw_fit: fitted moment magnitude
    :param apparent_stress: fitted apparent stress (MPa)
    :param source_params: :class:`SourcePhysicsParams`
    :param phase: phase of the observed spectrum. P-phase frequencies are
        scaled by 1/zeta, so that the energy is consistent with the S-wave
        corner frequency
    :param label: label for log messages
    :return: :class:`codaspec.csp_data_types.EnergyInfo`
    """
    _, freqs, measurements = usable_spectrum(band_to_log_amplitude, label)
    if len(freqs) < 2:
        raise InsufficientDataError(
            f'{label}: at least 2 usable bands are needed for spectral '
            f'integration, {len(freqs)} found')
    model = SourceSpectrumModel(source_params, phase=phase)
    # log10 moment rate in N.m
    log_moment_rate = np.array(
        [meas.mean for meas in measurements]) - DYNE_LOG10_ADJUSTMENT
    # P spectra roll off at zeta times the S corner: integrate them on the
    # equivalent S-wave frequency axis
    band_energy = _spectral_integral(
        freqs / model.corner_factor, log_moment_rate, model.energy_coeff)
    low_tail, high_tail = _tails(
        model, freqs, log_moment_rate, mw_fit, apparent_stress)
    obs_energy = check_finite(
        band_energy + low_tail + high_tail, f'{label}: radiated energy')
    mdac_energy = model.mdac_energy(mw_fit, apparent_stress)
    logger.debug(
        f'{label}: Er bands: {band_energy:.3e} J; '
        f'low tail: {low_tail:.3e} J; high tail: {high_tail:.3e} J')
    energy_info = EnergyInfo(
        obs_energy=float(obs_energy),
        log_total_energy=float(np.log10(obs_energy)),
        log_mdac_energy=float(np.log10(mdac_energy)),
        energy_ratio=float(obs_energy / mdac_energy),
        obs_apparent_stress=float(
            model.observed_apparent_stress(obs_energy, mw_fit)))
    check_finite(energy_info, f'{label}: energy')
    return energy_info


def energy_for_events(spectra_by_event, fits, source_params, phase='Lg',
                      config=None, cancel_token=None):
    """
    Compute radiated energy for all the fitted events.

    :param spectra_by_event: mapping from event id to band amplitudes
    :param fits: mapping from event id to
        :class:`codaspec.csp_data_types.FitResult`
    :return: :class:`codaspec.csp_data_types.BatchResult` of EnergyInfo
    """
    if config is None:
        config = default_config()
    logger.info('Computing radiated energy and apparent stress...')

    def _energy(event):
        fit_result = fits[event]
        return total_energy(
            spectra_by_event[event], fit_result.mw,
            fit_result.apparent_stress, source_params, phase,
            label=f'Event {event}')

    events = [event for event in fits if event in spectra_by_event]
    batch = run_batch(
        _energy, events, config.n_workers, cancel_token, label='Event')
    logger.info('Computing radiated energy and apparent stress: done')
    logger.info('---------------------------------------------------')
    return batch
