# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Calibration pipeline: site terms, Mw and radiated energy for all events.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import logging
from codaspec.csp_data_types import CalibrationResult
from codaspec.csp_spectral_fit import fit_events
from codaspec.csp_radiated_energy import energy_for_events
from codaspec.csp_site_terms import (
    site_terms_by_band, site_corrected_measurements,
    weight_functions_for_events)
from codaspec.csp_config import default_config
logger = logging.getLogger(__name__.rsplit('.', maxsplit=1)[-1])


def measure_mws(measurements_by_event, phase, source_params,
                path_params=None, weight_fns=None, config=None,
                cancel_token=None):
    """
    Fit Mw and apparent stress, then compute radiated energy, per event.

    :param measurements_by_event: mapping from event id to a mapping from
        band to site-corrected log amplitude (float or BandMeasurement)
    :param weight_fns: optional mapping from event id to weight function
    :return: :class:`codaspec.csp_data_types.CalibrationResult`, with
        empty site terms
    """
    if config is None:
        config = default_config()
    fit_batch = fit_events(
        measurements_by_event, phase, source_params, path_params,
        weight_fns, config, cancel_token)
    failures = list(fit_batch.failures)
    energies = {}
    cancelled = fit_batch.cancelled
    if not cancelled:
        energy_batch = energy_for_events(
            measurements_by_event, fit_batch.results, source_params, phase,
            config, cancel_token)
        energies = energy_batch.results
        failures += energy_batch.failures
        cancelled = energy_batch.cancelled
    return CalibrationResult({}, fit_batch.results, energies, failures,
                             cancelled)


def calibrate(spectra_by_band, source_params, path_params_by_phase,
              reference_mw_by_event, phase='Lg', shared_band_params=None,
              config=None, cancel_token=None):
    """
    Run the full calibration.

    1. site terms for each band and station, anchored by the reference
       events;
    2. site-corrected average amplitude for each event and band;
    3. Mw and apparent stress fit for each event;
    4. radiated energy for each fitted event.

    Reference events with a known stress drop are fitted with uniform
    weights.

    The output only depends on the inputs and the configuration: running
    it twice gives identical results.

    :param spectra_by_band: mapping from frequency band to a list of
        :class:`codaspec.csp_data_types.SpectralObservation`
    :param source_params: :class:`SourcePhysicsParams`
    :param path_params_by_phase: mapping from phase to
        :class:`PhaseAttenuationParams`
    :param reference_mw_by_event: mapping from event id to
        :class:`codaspec.csp_data_types.ReferenceMw`
    :param phase: seismic phase of the measurements
    :param shared_band_params: optional collection of the bands to process
    :param config: Config object (default configuration if None)
    :param cancel_token: optional
        :class:`codaspec.csp_batch.CancellationToken`, checked between
        units of work; results completed before cancellation are returned
    :return: :class:`codaspec.csp_data_types.CalibrationResult`
    """
    if config is None:
        config = default_config()
    site_batch = site_terms_by_band(
        spectra_by_band, source_params, path_params_by_phase,
        reference_mw_by_event, shared_band_params, phase, config,
        cancel_token=cancel_token)
    site_terms = site_batch.results
    if site_batch.cancelled:
        return CalibrationResult(
            site_terms, {}, {}, list(site_batch.failures), True)
    measurements = site_corrected_measurements(spectra_by_band, site_terms)
    logger.info(
        f'{len(measurements)} event(s) with site-corrected amplitudes')
    weight_fns = weight_functions_for_events(
        measurements, reference_mw_by_event, config)
    path_params = (path_params_by_phase or {}).get(phase)
    mw_result = measure_mws(
        measurements, phase, source_params, path_params, weight_fns, config,
        cancel_token)
    return CalibrationResult(
        site_terms, mw_result.fits, mw_result.energies,
        list(site_batch.failures) + mw_result.failures,
        mw_result.cancelled)
