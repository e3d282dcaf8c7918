# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Band weighting for spectral fitting.

A weight function takes a mapping from frequency band to
:class:`codaspec.csp_data_types.BandMeasurement` and returns a mapping
from the same bands to positive weights.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import functools
import numpy as np
from codaspec.csp_util import band_center, as_measurement

# weights for the lower_frequency scheme, lowest band first;
# the remaining bands get LOWER_FREQUENCY_TAIL_WEIGHT
LOWER_FREQUENCY_WEIGHTS = (0.5, 1.0, 0.5, 0.25)
LOWER_FREQUENCY_TAIL_WEIGHT = 0.1


def _sorted_by_frequency(measurements):
    return sorted(measurements, key=lambda key: (band_center(key), key))


def variance_weight(measurement):
    """
    Weight of one band from its measurement statistics.

    ``1 + 1/(std/sqrt(n))`` when more than one measurement is available
    and the result is finite, 1 otherwise.
    """
    meas = as_measurement(measurement)
    count = meas.count
    std = meas.std
    if count > 1 and np.isfinite(std) and std > 0:
        weight = 1. + 1. / (std / np.sqrt(count))
        if np.isfinite(weight):
            return float(weight)
    return 1.


def variance_weights(measurements):
    """Variance weights for all the bands."""
    return {key: variance_weight(meas) for key, meas in measurements.items()}


def upweight_lowest_bands(weights, n_lowest=2, factor=2.):
    """
    Give the lowest-frequency bands a multiple of the maximum weight.

    The ``n_lowest`` bands with the lowest center frequency get
    ``factor`` times the maximum weight (at least 1) of all the bands.
    A new mapping is returned.
    """
    new_weights = dict(weights)
    if not new_weights:
        return new_weights
    max_weight = max(1., max(new_weights.values()))
    for key in _sorted_by_frequency(new_weights)[:n_lowest]:
        new_weights[key] = factor * max_weight
    return new_weights


def default_weights(measurements, n_lowest=2, factor=2.):
    """Variance weights, with the lowest bands upweighted."""
    return upweight_lowest_bands(
        variance_weights(measurements), n_lowest, factor)


def uniform_weights(measurements):
    """Unit weight for all the bands."""
    return {key: 1. for key in measurements}


def lower_frequency_weights(measurements):
    """Fixed weights favoring the lowest-frequency bands."""
    weights = {}
    for n, key in enumerate(_sorted_by_frequency(measurements)):
        try:
            weights[key] = LOWER_FREQUENCY_WEIGHTS[n]
        except IndexError:
            weights[key] = LOWER_FREQUENCY_TAIL_WEIGHT
    return weights


def make_weight_function(config):
    """
    Build the weight function selected in the configuration.

    :param config: Config object
    :param config type: :class:`codaspec.csp_config.Config`
    """
    if config.weighting == 'variance':
        return functools.partial(
            default_weights,
            n_lowest=config.n_lowest_bands_upweighted,
            factor=config.lowest_band_weight_factor)
    if config.weighting == 'lower_frequency':
        return lower_frequency_weights
    return uniform_weights
