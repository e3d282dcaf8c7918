# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Source spectrum model.

Single-corner (Brune-type) moment-rate spectrum with the MDAC scaling of
Walter & Taylor (2002) between moment, apparent stress and corner
frequency, plus geometrical spreading and frequency-dependent attenuation
for the full predicted amplitude at a given distance.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import math
import numpy as np
from codaspec.csp_errors import InvalidParameterError, check_finite
from codaspec.csp_util import (
    mag_to_moment, moment_to_mag, DYNE_LOG10_ADJUSTMENT)

P_PHASES = ('P', 'Pn', 'Pg')
S_PHASES = ('S', 'Sn', 'Lg')


def _check_frequency(freq):
    freq = np.asarray(freq, dtype=float)
    if not np.all(np.isfinite(freq) & (freq > 0)):
        raise InvalidParameterError(
            f'frequencies must be positive and finite: {freq}')
    return freq


def _scalar(value):
    return float(value) if np.ndim(value) == 0 else value


def _check_stress(apparent_stress):
    try:
        valid = math.isfinite(apparent_stress) and apparent_stress > 0
    except TypeError:
        valid = False
    if not valid:
        raise InvalidParameterError(
            f'apparent stress must be positive and finite: {apparent_stress}')


def k_constant(source_params):
    r"""
    MDAC constant linking corner frequency, apparent stress and moment.

    .. math::

        K = \frac{16 \pi}{\beta_s^2 \left(
            \frac{R_P^2 \zeta^3}{\alpha_s^5} + \frac{R_S^2}{\beta_s^5}
            \right)}

    so that :math:`\omega_c^3 = K \sigma_a / M_0` (SI units).
    """
    p = source_params
    return 16. * math.pi / (
        p.beta_s**2 * (
            p.rad_pat_p**2 * p.zeta**3 / p.alpha_s**5 +
            p.rad_pat_s**2 / p.beta_s**5
        )
    )


def energy_constant(source_params):
    r"""
    Constant relating radiated energy to the moment-rate spectrum.

    .. math::

        E = C \int_0^\infty \omega^2 \dot{M}(\omega)^2 d\omega, \quad
        C = \frac{1}{4 \pi^2 \rho_s} \left(
            \frac{R_P^2 \zeta^3}{\alpha_s^5} + \frac{R_S^2}{\beta_s^5}
            \right)

    For the single-corner spectrum this gives
    :math:`E = M_0 \sigma_a / (\rho_s \beta_s^2)`.
    """
    p = source_params
    return (
        p.rad_pat_p**2 * p.zeta**3 / p.alpha_s**5 +
        p.rad_pat_s**2 / p.beta_s**5
    ) / (4. * math.pi**2 * p.rho_s)


class SourceSpectrumModel():
    """
    Forward model for one phase and one set of source/path parameters.

    Phase-dependent constants are computed once at construction, so that
    the model can be evaluated many times inside an optimizer.

    Apparent stresses are in MPa. When ``apparent_stress`` is None, the
    MDAC scaling :math:`\\sigma_a = \\sigma (M_0/M_{0,ref})^\\psi` is used.
    """

    def __init__(self, source_params, path_params=None, phase='Lg'):
        self.source_params = source_params
        self.path_params = path_params
        self.phase = phase
        p = source_params
        if phase in P_PHASES:
            rad_pat, vel_s, vel_r = p.rad_pat_p, p.alpha_s, p.alpha_r
            self.corner_factor = p.zeta
        elif phase in S_PHASES:
            rad_pat, vel_s, vel_r = p.rad_pat_s, p.beta_s, p.beta_r
            self.corner_factor = 1.
        else:
            raise InvalidParameterError(f'unknown phase: {phase!r}')
        self.k_coeff = k_constant(p)
        self.energy_coeff = energy_constant(p)
        # source term, converts moment rate to displacement at 1 m
        self.log_source_coeff = math.log10(
            abs(rad_pat) / (4. * math.pi * math.sqrt(
                p.rho_s * p.rho_r * vel_s**5 * vel_r)))

    def apparent_stress(self, mw, apparent_stress=None):
        """Apparent stress (MPa) for the given magnitude."""
        if apparent_stress is not None:
            _check_stress(apparent_stress)
            return apparent_stress
        p = self.source_params
        return p.sigma * (mag_to_moment(mw) / p.m0_ref)**p.psi

    def angular_corner_frequency(self, mw, apparent_stress=None):
        """S-wave angular corner frequency (rad/s)."""
        sigma_a = self.apparent_stress(mw, apparent_stress) * 1e6
        return (self.k_coeff * sigma_a / mag_to_moment(mw))**(1. / 3)

    def corner_frequency(self, mw, apparent_stress=None):
        """Corner frequency (Hz) for the model phase."""
        omega_c = self.angular_corner_frequency(mw, apparent_stress)
        return self.corner_factor * omega_c / (2 * math.pi)

    def apparent_stress_from_corner(self, mw, fc):
        """Apparent stress (MPa) from magnitude and corner frequency (Hz)."""
        fc = _check_frequency(fc)
        omega_c = 2 * math.pi * fc / self.corner_factor
        return _scalar(omega_c**3 * mag_to_moment(mw) / self.k_coeff / 1e6)

    def mdac_energy(self, mw, apparent_stress=None):
        """Radiated energy (J) of the model spectrum."""
        p = self.source_params
        sigma_a = self.apparent_stress(mw, apparent_stress) * 1e6
        return mag_to_moment(mw) * sigma_a / (p.rho_s * p.beta_s**2)

    def observed_apparent_stress(self, energy, mw):
        """Apparent stress (MPa) implied by a radiated energy (J)."""
        p = self.source_params
        return energy * p.rho_s * p.beta_s**2 / mag_to_moment(mw) / 1e6

    def spectrum_func(self, freq):
        """
        Return a fast evaluator of the log amplitude at fixed frequencies.

        Frequencies are validated once; the returned function takes
        ``(mw, log10_apparent_stress)`` and returns log10 amplitudes in
        dyne-cm, without further input checking.
        """
        omega = 2 * math.pi * _check_frequency(freq)
        k_coeff = self.k_coeff
        corner_factor = self.corner_factor

        def _log_amplitude(mw, log_stress):
            log_m0 = 1.5 * mw + 9.1
            omega_c = corner_factor * (
                k_coeff * 10**(log_stress + 6. - log_m0))**(1. / 3)
            return (
                log_m0 + DYNE_LOG10_ADJUSTMENT -
                np.log10(1. + (omega / omega_c)**2)
            )
        return _log_amplitude

    def log_moment_rate(self, freq, mw, apparent_stress=None):
        """Log10 of the moment-rate spectrum (N.m) at the given frequencies."""
        freq = _check_frequency(freq)
        omega_c = self.corner_factor * self.angular_corner_frequency(
            mw, apparent_stress)
        log_mr = (
            np.log10(mag_to_moment(mw)) -
            np.log10(1. + (2 * math.pi * freq / omega_c)**2)
        )
        return _scalar(check_finite(log_mr, 'log moment rate'))

    def log_amplitude(self, freq, mw, apparent_stress=None):
        """
        Log10 of the source spectrum in dyne-cm.

        This is the quantity path-corrected coda amplitudes are compared
        against.
        """
        return (
            self.log_moment_rate(freq, mw, apparent_stress) +
            DYNE_LOG10_ADJUSTMENT
        )

    def geometrical_spreading(self, distance):
        """Log10 of the geometrical spreading at the given distance (m)."""
        pp = self._check_path(distance)
        if distance < pp.dist_crit:
            return -math.log10(distance)
        return (
            -math.log10(pp.dist_crit) +
            pp.eta * math.log10(pp.dist_crit / distance)
        )

    def log_attenuation(self, freq, distance):
        """Log10 of exp(-pi f r / (Q(f) u0))."""
        pp = self._check_path(distance)
        freq = _check_frequency(freq)
        log_att = (
            -math.pi * freq * distance * math.log10(math.e) /
            (pp.quality_factor(freq) * pp.u0)
        )
        return _scalar(check_finite(log_att, 'attenuation'))

    def log_displacement(self, freq, mw, apparent_stress=None, distance=1.):
        """
        Log10 of the predicted displacement spectrum (m.s) at a distance (m).

        Source term, geometrical spreading and attenuation are all
        applied.
        """
        log_displ = (
            self.log_source_coeff +
            self.log_moment_rate(freq, mw, apparent_stress) +
            self.geometrical_spreading(distance) +
            self.log_attenuation(freq, distance)
        )
        return _scalar(check_finite(log_displ, 'displacement spectrum'))

    def _check_path(self, distance):
        if self.path_params is None:
            raise InvalidParameterError(
                'path parameters are required to apply path effects')
        try:
            valid = math.isfinite(distance) and distance > 0
        except TypeError:
            valid = False
        if not valid:
            raise InvalidParameterError(
                f'distance must be positive and finite: {distance}')
        return self.path_params


def amplitude(frequency, mw, apparent_stress, phase, source_params,
              path_params=None, distance=None):
    """
    Predicted log10 amplitude at the given frequency (or frequencies).

    Without a distance, the source spectrum in dyne-cm is returned
    (the reference for path-corrected amplitudes). With a distance (m),
    the full displacement spectrum (m.s), including radiation pattern,
    medium scaling, spreading and attenuation, is returned.

    :param frequency: frequency or array of frequencies (Hz), > 0
    :param mw: moment magnitude
    :param apparent_stress: apparent stress (MPa), > 0; None to use the
        MDAC scaling of ``source_params``
    :param phase: seismic phase (``Pn``, ``Pg``, ``Sn``, ``Lg``, ``P``,
        ``S``)
    :param source_params: :class:`SourcePhysicsParams`
    :param path_params: :class:`PhaseAttenuationParams`
    :param distance: source-receiver distance (m)
    """
    model = SourceSpectrumModel(source_params, path_params, phase)
    if distance is None:
        return model.log_amplitude(frequency, mw, apparent_stress)
    return model.log_displacement(frequency, mw, apparent_stress, distance)


__all__ = [
    'SourceSpectrumModel', 'amplitude', 'k_constant', 'energy_constant',
    'mag_to_moment', 'moment_to_mag', 'P_PHASES', 'S_PHASES']
