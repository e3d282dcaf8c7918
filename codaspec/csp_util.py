# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Utility functions for codaspec.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import logging
import numpy as np
from codaspec.csp_data_types import FrequencyBand, BandMeasurement
from codaspec.csp_errors import InvalidParameterError
logger = logging.getLogger(__name__.rsplit('.', maxsplit=1)[-1])

# log10 conversion from N.m to dyne-cm
DYNE_LOG10_ADJUSTMENT = 7.


# STATISTICS ------------------------------------------------------------------
def avg_and_std(values):
    """
    Return the average, the standard deviation and the number of values.

    NaN values are ignored. The average of an empty list is NaN.
    """
    values = np.asarray(values, dtype=float)
    values = values[~np.isnan(values)]
    if len(values) == 0:
        return np.nan, np.nan, 0
    average = np.mean(values)
    std = np.std(values, ddof=1) if len(values) > 1 else 0.
    return float(average), float(std), len(values)
# -----------------------------------------------------------------------------


# MAGNITUDE -------------------------------------------------------------------
def moment_to_mag(moment):
    """Convert moment (N.m) to magnitude."""
    return (np.log10(moment) - 9.1) / 1.5


def mag_to_moment(magnitude):
    """Convert magnitude to moment (N.m)."""
    return np.power(10, (1.5 * magnitude + 9.1))


def log_amplitude_to_mag(log_amplitude):
    """Convert a low-frequency log10 amplitude (dyne-cm) to magnitude."""
    return (log_amplitude - DYNE_LOG10_ADJUSTMENT - 9.1) / 1.5
# -----------------------------------------------------------------------------


# SPECTRA ---------------------------------------------------------------------
def band_center(key):
    """
    Center frequency of a spectral key.

    A key is a :class:`FrequencyBand`, a ``(low, high)`` pair or a plain
    frequency in Hz.
    """
    if isinstance(key, FrequencyBand):
        return key.center_frequency
    if isinstance(key, tuple):
        return FrequencyBand(*key).center_frequency
    freq = float(key)
    if not np.isfinite(freq) or freq <= 0:
        raise InvalidParameterError(
            f'frequency must be a positive finite number, got {key!r}')
    return freq


def as_measurement(value):
    """Wrap a plain log amplitude into a single-value BandMeasurement."""
    if isinstance(value, BandMeasurement):
        return value
    return BandMeasurement(float(value), 0., 1)


def usable_spectrum(band_to_amplitude, label=''):
    """
    Select the usable bands of a spectrum and sort them by frequency.

    Only bands with a finite, positive mean log amplitude are kept.

    :param band_to_amplitude: mapping from spectral key to log amplitude
        (float or BandMeasurement)
    :param label: label used in log messages
    :return: (keys, frequencies, measurements), sorted by frequency
    """
    items = []
    for key, value in band_to_amplitude.items():
        meas = as_measurement(value)
        freq = band_center(key)
        if not np.isfinite(meas.mean) or meas.mean <= 0:
            logger.debug(
                f'{label}: ignoring band {key} with log amplitude '
                f'{meas.mean}')
            continue
        items.append((freq, key, meas))
    # ties on center frequency are broken by band ordering
    items.sort(key=lambda item: (item[0], item[1]))
    keys = [item[1] for item in items]
    freqs = np.array([item[0] for item in items], dtype=float)
    measurements = [item[2] for item in items]
    return keys, freqs, measurements
# -----------------------------------------------------------------------------
