# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Data types for codaspec.

All the records are immutable: they are built once from upstream
measurements and never modified, so they can be shared between worker
threads.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import math
from collections import namedtuple
import numpy as np
from codaspec.csp_errors import InvalidParameterError


def _check_positive(cls_name, **kwargs):
    for key, value in kwargs.items():
        try:
            valid = math.isfinite(value) and value > 0
        except TypeError:
            valid = False
        if not valid:
            raise InvalidParameterError(
                f'{cls_name}: "{key}" must be a positive finite number, '
                f'got {value!r}')


def _check_finite(cls_name, **kwargs):
    for key, value in kwargs.items():
        try:
            valid = math.isfinite(value)
        except TypeError:
            valid = False
        if not valid:
            raise InvalidParameterError(
                f'{cls_name}: "{key}" must be a finite number, '
                f'got {value!r}')


class FrequencyBand(
        namedtuple('FrequencyBand', 'low_frequency high_frequency')):
    """
    A frequency band, in Hz.

    Bands are ordered by low frequency, then by high frequency
    (plain tuple ordering), and compare equal only when both bounds
    are equal.
    """
    __slots__ = ()

    def __new__(cls, low_frequency, high_frequency):
        _check_positive(
            cls.__name__,
            low_frequency=low_frequency, high_frequency=high_frequency)
        if not low_frequency < high_frequency:
            raise InvalidParameterError(
                f'{cls.__name__}: low frequency ({low_frequency}) must be '
                f'smaller than high frequency ({high_frequency})')
        return super().__new__(
            cls, float(low_frequency), float(high_frequency))

    @property
    def center_frequency(self):
        """Band center frequency, in Hz."""
        return (self.low_frequency + self.high_frequency) / 2.

    def __str__(self):
        return f'{self.low_frequency:g}-{self.high_frequency:g} Hz'


class PhaseAttenuationParams(
        namedtuple('PhaseAttenuationParams',
                   'phase q0 del_q0 gamma0 del_gamma0 u0 eta del_eta '
                   'dist_crit snr_threshold')):
    """
    Path attenuation constants for one seismic phase.

    The quality factor is ``Q(f) = q0 * f**gamma0``; ``u0`` is the group
    velocity (m/s); geometrical spreading follows ``1/r`` below
    ``dist_crit`` (m) and ``r**-eta`` beyond it.
    """
    __slots__ = ()

    def __new__(cls, phase, q0, del_q0=0., gamma0=0., del_gamma0=0.,
                u0=3500., eta=0.5, del_eta=0., dist_crit=1e5,
                snr_threshold=2.):
        _check_positive(cls.__name__, q0=q0, u0=u0, dist_crit=dist_crit)
        _check_finite(
            cls.__name__, gamma0=gamma0, eta=eta, del_q0=del_q0,
            del_gamma0=del_gamma0, del_eta=del_eta,
            snr_threshold=snr_threshold)
        return super().__new__(
            cls, phase, q0, del_q0, gamma0, del_gamma0, u0, eta, del_eta,
            dist_crit, snr_threshold)

    def quality_factor(self, freq):
        """Quality factor at the given frequency (or frequencies)."""
        return self.q0 * np.power(freq, self.gamma0)


class SourcePhysicsParams(
        namedtuple('SourcePhysicsParams',
                   'sigma del_sigma psi del_psi zeta m0_ref '
                   'alpha_s beta_s rho_s alpha_r beta_r rho_r '
                   'rad_pat_p rad_pat_s')):
    """
    Source and receiver medium constants.

    :param sigma: apparent stress at the reference moment (MPa)
    :param psi: apparent stress scaling exponent with moment
    :param zeta: P to S corner frequency ratio
    :param m0_ref: reference moment (N.m)
    :param alpha_s, beta_s, rho_s: P velocity, S velocity (m/s) and
        density (kg/m^3) at the source
    :param alpha_r, beta_r, rho_r: same, at the receiver
    :param rad_pat_p, rad_pat_s: average P and S radiation patterns
    """
    __slots__ = ()

    def __new__(cls, sigma, del_sigma, psi, del_psi, zeta, m0_ref,
                alpha_s, beta_s, rho_s, alpha_r, beta_r, rho_r,
                rad_pat_p, rad_pat_s):
        _check_positive(
            cls.__name__, sigma=sigma, zeta=zeta, m0_ref=m0_ref,
            alpha_s=alpha_s, beta_s=beta_s, rho_s=rho_s,
            alpha_r=alpha_r, beta_r=beta_r, rho_r=rho_r)
        _check_finite(
            cls.__name__, del_sigma=del_sigma, psi=psi, del_psi=del_psi,
            rad_pat_p=rad_pat_p, rad_pat_s=rad_pat_s)
        if rad_pat_p == 0 and rad_pat_s == 0:
            raise InvalidParameterError(
                f'{cls.__name__}: radiation patterns cannot be both zero')
        return super().__new__(
            cls, sigma, del_sigma, psi, del_psi, zeta, m0_ref,
            alpha_s, beta_s, rho_s, alpha_r, beta_r, rho_r,
            rad_pat_p, rad_pat_s)

    def with_stress(self, stress):
        """
        Return a copy with a fixed apparent stress (MPa).

        The moment scaling exponent ``psi`` is set to zero, so that the
        given stress applies at every moment.
        """
        params = self._asdict()
        params.update(sigma=stress, psi=0.)
        return type(self)(**params)


class SpectralObservation(
        namedtuple('SpectralObservation',
                   'band event_id station_id path_corrected '
                   'raw_at_start raw_at_measurement_time')):
    """
    One coda amplitude measurement.

    Amplitudes are log10 values; ``path_corrected`` is in dyne-cm units.
    """
    __slots__ = ()

    def __new__(cls, band, event_id, station_id, path_corrected,
                raw_at_start=np.nan, raw_at_measurement_time=np.nan):
        if not isinstance(band, FrequencyBand):
            band = FrequencyBand(*band)
        return super().__new__(
            cls, band, event_id, station_id, float(path_corrected),
            float(raw_at_start), float(raw_at_measurement_time))


class ReferenceMw(namedtuple('ReferenceMw', 'event_id mw stress_drop_mpa')):
    """Independently known magnitude (and stress drop) of an event."""
    __slots__ = ()

    def __new__(cls, event_id, mw, stress_drop_mpa=None):
        _check_finite(cls.__name__, mw=mw)
        if stress_drop_mpa is not None:
            _check_positive(cls.__name__, stress_drop_mpa=stress_drop_mpa)
        return super().__new__(cls, event_id, mw, stress_drop_mpa)


class BandMeasurement(namedtuple('BandMeasurement', 'mean std count')):
    """Summary of the log amplitudes measured in one band for one event."""
    __slots__ = ()

    @classmethod
    def from_values(cls, values):
        values = np.asarray(values, dtype=float)
        count = len(values)
        if count == 0:
            return cls(np.nan, np.nan, 0)
        mean = float(np.mean(values))
        std = float(np.std(values, ddof=1)) if count > 1 else 0.
        return cls(mean, std, count)


class FitResult(
        namedtuple('FitResult',
                   'mw data_count apparent_stress misfit corner_frequency '
                   'log_mdac_energy log_m0 mw_sd apparent_stress_sd '
                   'mw_1_min mw_1_max mw_2_min mw_2_max iterations '
                   'converged apparent_stress_1_min apparent_stress_1_max '
                   'apparent_stress_2_min apparent_stress_2_max '
                   'corner_frequency_sd event_id')):
    """
    Spectral fit result for one event.

    The field order is part of the output contract:

    ===  ======================  =========================================
    idx  field                   meaning
    ===  ======================  =========================================
    0    mw                      fitted moment magnitude
    1    data_count              number of measurements used
    2    apparent_stress         fitted apparent stress (MPa)
    3    misfit                  weighted RMS residual (log10 units)
    4    corner_frequency        corner frequency of the fitted phase (Hz)
    5    log_mdac_energy         log10 of the model radiated energy (J)
    6    log_m0                  log10 of the seismic moment (dyne-cm)
    7    mw_sd                   Mw standard deviation
    8    apparent_stress_sd      apparent stress standard deviation (MPa)
    9    mw_1_min                Mw at -1 standard deviation
    10   mw_1_max                Mw at +1 standard deviation
    11   mw_2_min                Mw at -2 standard deviations
    12   mw_2_max                Mw at +2 standard deviations
    13   iterations              function evaluations used by the optimizer
    14   converged               False for best-effort results
    15   apparent_stress_1_min   apparent stress at -1 standard deviation
    16   apparent_stress_1_max   apparent stress at +1 standard deviation
    17   apparent_stress_2_min   apparent stress at -2 standard deviations
    18   apparent_stress_2_max   apparent stress at +2 standard deviations
    19   corner_frequency_sd     corner frequency standard deviation (Hz)
    20   event_id                event identifier (not part of as_array())
    ===  ======================  =========================================

    Apparent stress bounds are computed on log10(apparent stress), so they
    are not symmetric around ``apparent_stress``.
    """
    __slots__ = ()

    def __str__(self):
        return (
            f'Mw: {self.mw:.3f}; sigma_a: {self.apparent_stress:.3f} MPa; '
            f'fc: {self.corner_frequency:.3f} Hz; misfit: {self.misfit:.3f}'
        )

    def as_array(self):
        """Return the numeric fields as a float array."""
        return np.array(self[:-1], dtype=float)


class EnergyInfo(
        namedtuple('EnergyInfo',
                   'obs_energy log_total_energy log_mdac_energy '
                   'energy_ratio obs_apparent_stress')):
    """
    Radiated energy estimate for one event.

    Energies are in J (log10 for the ``log_`` fields),
    ``obs_apparent_stress`` is in MPa.
    """
    __slots__ = ()


class SiteTerm(
        namedtuple('SiteTerm',
                   'band station_id site_term n_obs std hops constrained')):
    """
    Additive log10 correction for one station in one frequency band.

    ``hops`` is 0 for stations anchored by a reference event and counts
    the propagation steps otherwise. Stations not connected to any
    reference event have ``site_term=0``, ``hops=None`` and
    ``constrained=False``.
    """
    __slots__ = ()

    @classmethod
    def unconstrained(cls, band, station_id):
        return cls(band, station_id, 0., 0, np.nan, None, False)


UnitFailure = namedtuple('UnitFailure', 'unit error')
UnitFailure.__doc__ = 'A unit of work (event id or band) and its exception.'


class BatchResult(namedtuple('BatchResult', 'results failures cancelled')):
    """
    Outcome of a batch operation.

    ``results`` maps each unit (event id or band) to its result, sorted by
    unit; ``failures`` is a list of :class:`UnitFailure`; ``cancelled`` is
    True if the batch was interrupted by a cancellation token.
    """
    __slots__ = ()


class CalibrationResult(
        namedtuple('CalibrationResult',
                   'site_terms fits energies failures cancelled')):
    """
    Outcome of a calibration run.

    ``site_terms`` maps band to station to :class:`SiteTerm`; ``fits`` and
    ``energies`` map event id to :class:`FitResult` and :class:`EnergyInfo`;
    ``failures`` lists the :class:`UnitFailure` of all the steps.
    """
    __slots__ = ()
