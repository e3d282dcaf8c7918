# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Station site terms from a network of coda amplitude measurements.

For each frequency band, events and stations form a bipartite graph.
Stations which recorded a reference event (an event with independently
known Mw) get a site term equal to the mean residual between the model
amplitude at the reference Mw and the observed path-corrected amplitude.
Site terms are then propagated breadth-first: events recorded by stations
with a known site term get a site-corrected amplitude level, which in turn
gives a site term to the other stations that recorded them.

Stations with no path to a reference event get a zero, unconstrained,
site term.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import logging
from collections import defaultdict
import numpy as np
from codaspec.csp_data_types import (
    FrequencyBand, ReferenceMw, SiteTerm, BandMeasurement)
from codaspec.csp_source_model import SourceSpectrumModel
from codaspec.csp_util import avg_and_std
from codaspec.csp_weights import uniform_weights, make_weight_function
from codaspec.csp_batch import run_batch
from codaspec.csp_config import default_config
logger = logging.getLogger(__name__.rsplit('.', maxsplit=1)[-1])


def _as_band(band):
    return band if isinstance(band, FrequencyBand) else FrequencyBand(*band)


def _as_reference(event_id, ref):
    return ref if isinstance(ref, ReferenceMw) else ReferenceMw(event_id, ref)


def _group_by_event(observations, band):
    """
    Group observations by event, then by station.

    When the same (event, station) pair is measured more than once, the
    last observation is kept.
    """
    obs_by_event = defaultdict(dict)
    for obs in observations:
        if not np.isfinite(obs.path_corrected):
            logger.debug(
                f'{band}: ignoring non-finite amplitude for event '
                f'{obs.event_id}, station {obs.station_id}')
            continue
        obs_by_event[obs.event_id][obs.station_id] = obs.path_corrected
    return obs_by_event


def _reference_residuals(band, obs_by_event, references, model_for):
    """Residuals between model and observed amplitudes for each station."""
    freq = band.center_frequency
    residuals = defaultdict(list)
    for event in sorted(obs_by_event):
        ref = references.get(event)
        if ref is None:
            continue
        model = model_for(ref)
        ref_amp = float(model.log_amplitude(freq, ref.mw))
        for station, amp in sorted(obs_by_event[event].items()):
            residuals[station].append(ref_amp - amp)
    return residuals


def _event_levels(obs_by_event, references, terms):
    """Site-corrected amplitude level of the non-reference events."""
    levels = {}
    for event in sorted(obs_by_event):
        if event in references:
            continue
        corrected = [
            amp + terms[station].site_term
            for station, amp in sorted(obs_by_event[event].items())
            if station in terms
        ]
        if corrected:
            levels[event] = np.mean(corrected)
    return levels


def _propagate(band, obs_by_event, references, terms, max_hops):
    """Breadth-first propagation of the site terms to unanchored stations."""
    stations_by_event = {
        event: sorted(stations) for event, stations in obs_by_event.items()}
    hops = 0
    while not max_hops or hops < max_hops:
        levels = _event_levels(obs_by_event, references, terms)
        offsets = defaultdict(list)
        for event in sorted(levels):
            for station in stations_by_event[event]:
                if station in terms:
                    continue
                offsets[station].append(
                    levels[event] - obs_by_event[event][station])
        if not offsets:
            break
        hops += 1
        for station in sorted(offsets):
            mean, std, nobs = avg_and_std(offsets[station])
            terms[station] = SiteTerm(
                band, station, mean, nobs, std, hops, True)
        logger.debug(
            f'{band}: {len(offsets)} site term(s) propagated at hop {hops}')
    return terms


def band_site_terms(band, observations, references, model_for, max_hops=0):
    """
    Site terms for all the stations in one frequency band.

    :param band: :class:`FrequencyBand`
    :param observations: iterable of
        :class:`codaspec.csp_data_types.SpectralObservation`
    :param references: mapping from event id to
        :class:`codaspec.csp_data_types.ReferenceMw`
    :param model_for: function returning the source model for a reference
        event
    :param max_hops: maximum number of propagation steps (0: no limit)
    :return: mapping from station id to
        :class:`codaspec.csp_data_types.SiteTerm`, sorted by station id
    """
    obs_by_event = _group_by_event(observations, band)
    stations = {
        station for stations in obs_by_event.values() for station in stations}
    residuals = _reference_residuals(
        band, obs_by_event, references, model_for)
    terms = {}
    for station in sorted(residuals):
        mean, std, nobs = avg_and_std(residuals[station])
        terms[station] = SiteTerm(band, station, mean, nobs, std, 0, True)
    if terms:
        _propagate(band, obs_by_event, references, terms, max_hops)
    unconstrained = sorted(stations - set(terms))
    if unconstrained:
        logger.warning(
            f'{band}: no path to a reference event for station(s) '
            f'{", ".join(str(s) for s in unconstrained)}: '
            'using an unconstrained site term of 0')
    for station in unconstrained:
        terms[station] = SiteTerm.unconstrained(band, station)
    return {station: terms[station] for station in sorted(terms)}


def site_terms_by_band(spectra_by_band, source_params, path_params_by_phase,
                       reference_mw_by_event, shared_band_params=None,
                       phase='Lg', config=None, model_factory=None,
                       cancel_token=None):
    """
    Compute site terms, one task per frequency band.

    Same parameters as :func:`solve_site_terms`.

    :return: :class:`codaspec.csp_data_types.BatchResult` mapping each band
        to its station site terms
    """
    if config is None:
        config = default_config()
    if model_factory is None:
        model_factory = SourceSpectrumModel
    path_params = (path_params_by_phase or {}).get(phase)
    references = {
        event: _as_reference(event, ref)
        for event, ref in (reference_mw_by_event or {}).items()}
    base_model = model_factory(source_params, path_params, phase)

    def model_for(ref):
        # a known stress drop replaces the apparent stress scaling
        if ref.stress_drop_mpa is None:
            return base_model
        return model_factory(
            source_params.with_stress(ref.stress_drop_mpa), path_params,
            phase)

    spectra = {_as_band(band): obs for band, obs in spectra_by_band.items()}
    if shared_band_params:
        shared_bands = {_as_band(band) for band in shared_band_params}
        for band in sorted(set(spectra) - shared_bands):
            logger.warning(f'{band}: no shared band parameters, skipping')
        spectra = {
            band: obs for band, obs in spectra.items()
            if band in shared_bands}
    logger.info('Computing site terms...')
    if not references:
        logger.warning(
            'No reference events: all the site terms are unconstrained')

    def _band_terms(band):
        return band_site_terms(
            band, spectra[band], references, model_for,
            config.max_propagation_hops)

    batch = run_batch(
        _band_terms, spectra, config.n_workers, cancel_token, label='Band')
    logger.info('Computing site terms: done')
    logger.info('---------------------------------------------------')
    return batch


def solve_site_terms(spectra_by_band, source_params, path_params_by_phase,
                     reference_mw_by_event, shared_band_params=None,
                     phase='Lg', config=None, model_factory=None,
                     cancel_token=None):
    """
    Compute per-station, per-band site terms.

    :param spectra_by_band: mapping from frequency band to a list of
        :class:`codaspec.csp_data_types.SpectralObservation`
    :param source_params: :class:`SourcePhysicsParams`
    :param path_params_by_phase: mapping from phase to
        :class:`PhaseAttenuationParams` (may be empty)
    :param reference_mw_by_event: mapping from event id to
        :class:`codaspec.csp_data_types.ReferenceMw` (or plain Mw)
    :param shared_band_params: optional collection of the bands to
        process; when empty, all the bands are processed
    :param phase: seismic phase of the measurements
    :param config: Config object (default configuration if None)
    :param model_factory: callable ``(source_params, path_params, phase)``
        returning the source model (default:
        :class:`codaspec.csp_source_model.SourceSpectrumModel`)
    :param cancel_token: optional
        :class:`codaspec.csp_batch.CancellationToken`
    :return: mapping from band to a mapping from station id to
        :class:`codaspec.csp_data_types.SiteTerm`, both sorted
    """
    return site_terms_by_band(
        spectra_by_band, source_params, path_params_by_phase,
        reference_mw_by_event, shared_band_params, phase, config,
        model_factory, cancel_token).results


def site_corrected_measurements(spectra_by_band, site_terms):
    """
    Average the site-corrected amplitudes of each event.

    Only constrained site terms are applied; measurements from stations
    without a constrained site term are not used.

    :param spectra_by_band: mapping from band to a list of observations
    :param site_terms: output of :func:`solve_site_terms`
    :return: mapping from event id to a mapping from band to
        :class:`codaspec.csp_data_types.BandMeasurement`, both sorted
    """
    values = defaultdict(lambda: defaultdict(list))
    for band_key, observations in spectra_by_band.items():
        band = _as_band(band_key)
        band_terms = site_terms.get(band, {})
        obs_by_event = _group_by_event(observations, band)
        for event in sorted(obs_by_event):
            for station, amp in sorted(obs_by_event[event].items()):
                term = band_terms.get(station)
                if term is None or not term.constrained:
                    continue
                values[event][band].append(amp + term.site_term)
    return {
        event: {
            band: BandMeasurement.from_values(values[event][band])
            for band in sorted(values[event])}
        for event in sorted(values)}


def weight_functions_for_events(events, reference_mw_by_event, config=None):
    """
    Weight function for each event.

    Reference events with a known stress drop are fitted with uniform
    weights, all the other events with the configured weighting.
    """
    if config is None:
        config = default_config()
    default_fn = make_weight_function(config)
    weight_fns = {}
    for event in events:
        ref = (reference_mw_by_event or {}).get(event)
        if ref is not None and _as_reference(event, ref).stress_drop_mpa:
            weight_fns[event] = uniform_weights
        else:
            weight_fns[event] = default_fn
    return weight_fns
