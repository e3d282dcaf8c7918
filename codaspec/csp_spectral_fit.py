# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Fit of moment magnitude and apparent stress to coda spectra.

The source spectrum model is fitted to the observed log amplitudes through
bounded weighted least squares (trust region reflective algorithm), over
Mw and log10 of the apparent stress. Several starting values for the
apparent stress are tried and the best solution is kept.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import logging
import numpy as np
from scipy.optimize import least_squares
from codaspec.csp_errors import (
    InsufficientDataError, InvalidParameterError, FitDidNotConverge,
    NumericDivergenceError)
from codaspec.csp_data_types import FitResult, FrequencyBand
from codaspec.csp_source_model import SourceSpectrumModel
from codaspec.csp_util import (
    usable_spectrum, log_amplitude_to_mag, DYNE_LOG10_ADJUSTMENT)
from codaspec.csp_weights import make_weight_function
from codaspec.csp_grid_sampling import GridSampling
from codaspec.csp_batch import run_batch
from codaspec.csp_config import default_config
logger = logging.getLogger(__name__.rsplit('.', maxsplit=1)[-1])


def residual_func(spectrum, ampl, weight):
    """
    Residual function generator for the least-squares fit.

    Parameters
    ----------
    spectrum : callable
        Function of (Mw, log10 apparent stress) returning the model log
        amplitudes, as returned by
        :meth:`SourceSpectrumModel.spectrum_func`.
    ampl : array-like
        Observed log amplitudes.
    weight : array-like
        Band weights.

    Returns
    -------
    callable
        Function of the parameter vector returning the weighted residuals.
    """
    sqrt_weight = np.sqrt(weight)

    def _residuals(params):
        res = sqrt_weight * (ampl - spectrum(*params))
        if not np.all(np.isfinite(res)):
            raise NumericDivergenceError(
                f'non-finite residuals for Mw={params[0]:.4f}, '
                f'log10(sigma_a)={params[1]:.4f}')
        return res
    return _residuals


def weighted_rms(residuals, weight):
    """Weighted root mean square of the residuals."""
    return float(np.sqrt(np.sum(weight * residuals**2) / np.sum(weight)))


def _initial_mw(ampl):
    """Initial Mw from the average of the two lowest-frequency bands."""
    return float(log_amplitude_to_mag(np.mean(ampl[:2])))


def _interior(x0, lower, upper):
    """Move the starting point strictly inside the bounds."""
    span = upper - lower
    return np.clip(x0, lower + 1e-6 * span, upper - 1e-6 * span)


def _covariance(jac, cost, ndata):
    """Parameter covariance, scaled by the reduced chi-square."""
    nparams = jac.shape[1]
    dof = ndata - nparams
    if dof <= 0:
        return np.full((nparams, nparams), np.nan)
    jtj = jac.T @ jac
    try:
        cov = np.linalg.inv(jtj)
    except np.linalg.LinAlgError:
        cov = np.linalg.pinv(jtj)
    return cov * 2 * cost / dof


def _corner_frequency_sd(fc, cov):
    """
    Corner frequency standard deviation (Hz).

    log10(fc) = (log10(sigma_a) - 1.5 Mw) / 3 + const, the covariance of
    (Mw, log10(sigma_a)) is propagated through this relation.
    """
    grad = np.array([-0.5, 1. / 3])
    log_fc_var = grad @ cov @ grad
    return fc * np.log(10) * np.sqrt(log_fc_var)


def _fit_result(event, model, mw, stress, ampl, weight, spectrum,
                data_count, cov, iterations, converged):
    """
    Build the fit result.

    ``cov`` is the covariance matrix of (Mw, log10(sigma_a)).
    """
    residuals = ampl - spectrum(mw, np.log10(stress))
    mw_sd, log_stress_sd = np.sqrt(np.diag(cov))
    stress_sd = stress * np.log(10) * log_stress_sd
    fc = model.corner_frequency(mw, stress)
    return FitResult(
        mw=float(mw),
        data_count=int(data_count),
        apparent_stress=float(stress),
        misfit=weighted_rms(residuals, weight),
        corner_frequency=float(fc),
        log_mdac_energy=float(np.log10(model.mdac_energy(mw, stress))),
        log_m0=float(1.5 * mw + 9.1 + DYNE_LOG10_ADJUSTMENT),
        mw_sd=float(mw_sd),
        apparent_stress_sd=float(stress_sd),
        mw_1_min=float(mw - mw_sd),
        mw_1_max=float(mw + mw_sd),
        mw_2_min=float(mw - 2 * mw_sd),
        mw_2_max=float(mw + 2 * mw_sd),
        iterations=int(iterations),
        converged=converged,
        apparent_stress_1_min=float(stress * 10**(-log_stress_sd)),
        apparent_stress_1_max=float(stress * 10**log_stress_sd),
        apparent_stress_2_min=float(stress * 10**(-2 * log_stress_sd)),
        apparent_stress_2_max=float(stress * 10**(2 * log_stress_sd)),
        corner_frequency_sd=float(_corner_frequency_sd(fc, cov)),
        event_id=event)


def _least_squares(config, residuals, mw_0, lower, upper, label):
    """Run one bounded inversion for each starting stress value."""
    best = None
    nfev = 0
    tol = config.convergence_tolerance
    if not tol > np.finfo(float).eps:
        raise InvalidParameterError(
            f'{label}: convergence_tolerance must be larger than '
            f'{np.finfo(float).eps:.2e}, got {tol}')
    for stress_0 in config.stress_starts:
        x0 = _interior(np.array([mw_0, np.log10(stress_0)]), lower, upper)
        res = least_squares(
            residuals, x0, bounds=(lower, upper), method='trf',
            max_nfev=config.fit_iteration_budget,
            ftol=tol, xtol=tol, gtol=tol)
        nfev += res.nfev
        logger.debug(
            f'{label}: start sigma_a={stress_0:g} MPa -> '
            f'Mw={res.x[0]:.4f}, sigma_a={10**res.x[1]:.4f} MPa, '
            f'cost={res.cost:.3e}, status={res.status}')
        # converged solutions win over unconverged ones, then lowest cost
        if (best is None or (res.success and not best.success) or
                (res.success == best.success and res.cost < best.cost)):
            best = res
    return best, nfev


def _grid_search(config, spectrum, ampl, weight, label):
    """Grid search over Mw (linear) and apparent stress (logarithmic)."""
    def misfit_func(params):
        mw, stress = params
        return np.sum(weight * (ampl - spectrum(mw, np.log10(stress)))**2)

    grid_sampling = GridSampling(
        misfit_func,
        bounds=(config.mw_min_max, config.apparent_stress_min_max),
        nsteps=config.grid_nsteps, sampling_mode=('lin', 'log'),
        params_name=('Mw', 'sigma_a'))
    logger.info(f'{label}: running grid search')
    grid_sampling.grid_search()
    mw, stress = grid_sampling.params_opt
    (mw_left, mw_right), (stress_left, stress_right) =\
        grid_sampling.params_err
    mw_sd = (mw_left + mw_right) / 2
    # stress errors are converted to log10 units
    log_stress_sd = (
        np.log10(stress + stress_right) - np.log10(stress - stress_left)) / 2
    cov = np.diag([mw_sd**2, log_stress_sd**2])
    return mw, stress, cov, grid_sampling.misfit.size


def fit(event, band_to_amplitude, phase, source_params, path_params=None,
        weight_fn=None, config=None):
    """
    Fit moment magnitude and apparent stress to one event spectrum.

    :param event: event identifier
    :param band_to_amplitude: mapping from frequency band to path-corrected
        log amplitude (dyne-cm), as float or
        :class:`codaspec.csp_data_types.BandMeasurement`
    :param phase: seismic phase
    :param source_params: :class:`SourcePhysicsParams`
    :param path_params: :class:`PhaseAttenuationParams` (optional)
    :param weight_fn: weight function (see :mod:`codaspec.csp_weights`);
        by default the one selected in the configuration
    :param config: Config object (default configuration if None)
    :return: :class:`codaspec.csp_data_types.FitResult`
    :raises InsufficientDataError: if too few usable bands are available
    :raises FitDidNotConverge: if the iteration budget is exhausted; the
        best-effort result is attached to the exception
    """
    if config is None:
        config = default_config()
    label = f'Event {event}'
    keys, freqs, measurements = usable_spectrum(band_to_amplitude, label)
    if len(keys) < config.min_bands:
        raise InsufficientDataError(
            f'{label}: {len(keys)} usable band(s), '
            f'at least {config.min_bands} required')
    if weight_fn is None:
        weight_fn = make_weight_function(config)
    weights = weight_fn(dict(zip(keys, measurements)))
    try:
        weight = np.array([weights[key] for key in keys], dtype=float)
    except KeyError as err:
        raise InvalidParameterError(
            f'{label}: no weight for band {err}') from err
    if not np.all(np.isfinite(weight) & (weight > 0)):
        raise InvalidParameterError(
            f'{label}: weights must be positive and finite: {weight}')
    ampl = np.array([meas.mean for meas in measurements])
    data_count = sum(meas.count for meas in measurements)

    model = SourceSpectrumModel(source_params, path_params, phase)
    spectrum = model.spectrum_func(freqs)
    residuals = residual_func(spectrum, ampl, weight)
    mw_min, mw_max = config.mw_min_max
    stress_min, stress_max = config.apparent_stress_min_max
    lower = np.array([mw_min, np.log10(stress_min)])
    upper = np.array([mw_max, np.log10(stress_max)])
    mw_0 = _initial_mw(ampl)
    logger.info(
        f'{label}: {len(keys)} bands, {data_count} measurements; '
        f'initial Mw: {mw_0:.4f}')

    res, nfev = _least_squares(config, residuals, mw_0, lower, upper, label)
    if res.success:
        mw, log_stress = res.x
        stress = 10**log_stress
        cov = _covariance(res.jac, res.cost, len(ampl))
        result = _fit_result(
            event, model, mw, stress, ampl, weight, spectrum, data_count,
            cov, nfev, converged=True)
        logger.info(f'{label}: {result}')
        return result

    msg = (
        f'{label}: fit did not converge within '
        f'{config.fit_iteration_budget} function evaluations')
    if config.grid_search_fallback:
        mw, stress, cov, ngrid = _grid_search(
            config, spectrum, ampl, weight, label)
        nfev += ngrid
    else:
        mw, log_stress = res.x
        stress = 10**log_stress
        cov = np.full((2, 2), np.nan)
    partial_result = _fit_result(
        event, model, mw, stress, ampl, weight, spectrum, data_count,
        cov, nfev, converged=False)
    raise FitDidNotConverge(
        f'{msg}; best-effort result: {partial_result}',
        partial_result=partial_result)


def fit_events(spectra_by_event, phase, source_params, path_params=None,
               weight_fns=None, config=None, cancel_token=None):
    """
    Fit all the events, one task per event.

    :param spectra_by_event: mapping from event id to a band to amplitude
        mapping (see :func:`fit`)
    :param weight_fns: optional mapping from event id to weight function;
        events not in the mapping use the configured weighting
    :param cancel_token: optional
        :class:`codaspec.csp_batch.CancellationToken`
    :return: :class:`codaspec.csp_data_types.BatchResult` of FitResult
    """
    if config is None:
        config = default_config()
    weight_fns = weight_fns or {}
    default_weight_fn = make_weight_function(config)
    logger.info('Fitting spectra...')

    def _fit_event(event):
        return fit(
            event, spectra_by_event[event], phase, source_params,
            path_params, weight_fns.get(event, default_weight_fn), config)

    batch = run_batch(
        _fit_event, spectra_by_event, config.n_workers, cancel_token,
        label='Event')
    logger.info(
        f'Fitting spectra: done ({len(batch.results)} fitted, '
        f'{len(batch.failures)} failed)')
    logger.info('---------------------------------------------------')
    return batch


def synthetic_spectrum(bands, mw, apparent_stress, phase, source_params):
    """
    Model log amplitudes (dyne-cm) for a set of frequency bands.

    :param bands: iterable of frequency bands (or (low, high) pairs)
    :param apparent_stress: apparent stress (MPa); None to use the MDAC
        scaling of ``source_params``
    :return: mapping from band to log amplitude
    """
    model = SourceSpectrumModel(source_params, phase=phase)
    bands = sorted(
        band if isinstance(band, FrequencyBand) else FrequencyBand(*band)
        for band in bands)
    freqs = np.array([band.center_frequency for band in bands])
    ampl = model.log_amplitude(freqs, mw, apparent_stress)
    return dict(zip(bands, np.atleast_1d(ampl).tolist()))
