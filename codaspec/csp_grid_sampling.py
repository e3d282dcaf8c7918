# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Grid sampling of the (Mw, apparent stress) space.

Used as a fallback when the least-squares fit does not converge within its
iteration budget.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import warnings
import logging
import numpy as np
from scipy.signal import peak_widths
from scipy.signal._peak_finding_utils import PeakPropertyWarning
logger = logging.getLogger(__name__.rsplit('.', maxsplit=1)[-1])


def peak_width(x, peak_idx, rel_height, negative=False):
    """
    Find width of a single peak at a given relative height.

    rel_height: float parameter between 0 and 1
                0 means the base of the curve and 1 the peak value
                (Note: this is the opposite of scipy.peak_widths)
    """
    if rel_height < 0 or rel_height > 1:
        raise ValueError('rel_height must be between 0 and 1')
    sign = -1 if negative else 1
    with warnings.catch_warnings():
        warnings.filterwarnings('ignore', category=PeakPropertyWarning)
        _, width_height, idx_left, idx_right = peak_widths(
            sign*x, [peak_idx, ], 1-rel_height)
    idx_left = int(idx_left[0])
    idx_right = int(idx_right[0])
    width_height = sign*width_height[0]
    # the peak is too flat or too close to the border:
    # search the closest points to the target height on each side
    if idx_left == idx_right:
        height = x.max() - x.min()
        if not negative:
            rel_height = 1 - rel_height
        width_height = x.max() - rel_height*height
        x2 = x.copy()
        x2[peak_idx:] = np.inf
        idx_left = int(np.argmin(np.abs(x2 - width_height)))
        x2 = x.copy()
        x2[:peak_idx] = np.inf
        idx_right = int(np.argmin(np.abs(x2 - width_height)))
    return width_height, idx_left, idx_right


class GridSampling():
    """
    Sample a misfit function over a regular grid.

    The class provides the optimal solution and its uncertainties,
    estimated from the width of the conditional misfit around the minimum.
    """

    def __init__(self, misfit_func, bounds, nsteps, sampling_mode,
                 params_name):
        """
        Init grid sampling.

        bounds : sequence of (min, max) pairs for each dimension.
        nsteps : number of grid steps for each dimension.
        sampling_mode : sequence of 'lin' or 'log' for each dimension.
        params_name : sequence of parameter names (str).
        """
        self.misfit_func = misfit_func
        self.bounds = bounds
        self.nsteps = nsteps
        self.sampling_mode = sampling_mode
        self.params_name = params_name
        self.misfit = None
        self._conditional_misfit = None
        self._conditional_peak_widths = None
        self._values = None
        self.truebounds = []
        for bds, mode in zip(self.bounds, self.sampling_mode):
            if None in bds:
                raise ValueError(
                    'All parameters must be bounded for grid sampling')
            if mode == 'log':
                if bds[0] <= 0:
                    raise ValueError(
                        'Log-sampled parameters must have positive bounds')
                bds = tuple(np.log10(bds))
            self.truebounds.append(bds)

    def __str__(self):
        return ', '.join(
            f'{name}: {bds[0]}-{bds[1]} ({ns} {mode} steps)'
            for name, bds, ns, mode in zip(
                self.params_name, self.bounds, self.nsteps,
                self.sampling_mode))

    @property
    def values(self):
        if self._values is not None:
            return self._values
        values = []
        for bds, ns, mode in zip(
                self.truebounds, self.nsteps, self.sampling_mode):
            if mode == 'log':
                values.append(np.logspace(*bds, ns))
            else:
                values.append(np.linspace(*bds, ns))
        self._values = np.meshgrid(*values, indexing='ij')
        return self._values

    @property
    def values_1d(self):
        """Extract a 1D array of parameter values along each dimension."""
        values_1d = []
        for dim, vals in enumerate(self.values):
            v = np.moveaxis(vals, dim, -1)
            idx = (0, ) * (v.ndim - 1)
            values_1d.append(v[idx])
        return tuple(values_1d)

    @property
    def min_idx(self):
        if self.misfit is None:
            return None
        return np.unravel_index(np.nanargmin(self.misfit), self.misfit.shape)

    @property
    def conditional_misfit(self):
        """
        Compute conditional misfit along each dimension.

        Conditional misfit is computed by fixing the other parameters to
        their optimal value.
        """
        if self.misfit is None:
            return None
        if self._conditional_misfit is not None:
            return self._conditional_misfit
        cond_misfit = []
        for dim in range(self.misfit.ndim):
            # move the dimension to keep to the last axis and fix the
            # other coordinates to the minimum
            mm = np.moveaxis(self.misfit, dim, -1)
            idx = tuple(v for n, v in enumerate(self.min_idx) if n != dim)
            cond_misfit.append(mm[idx])
        self._conditional_misfit = tuple(cond_misfit)
        return self._conditional_misfit

    @property
    def params_opt(self):
        if self.misfit is None:
            return None
        return np.array([v[self.min_idx] for v in self.values])

    @property
    def params_err(self):
        """Left and right uncertainty for each parameter."""
        if self.misfit is None:
            return None
        error = []
        for p, w in zip(self.params_opt, self.conditional_peak_widths):
            err_left = p-w[1]
            err_right = w[2]-p
            error.append((err_left, err_right))
        return tuple(error)

    @property
    def conditional_peak_widths(self):
        """Find width of conditional misfit around its minimum."""
        if self.misfit is None:
            return None
        if self._conditional_peak_widths is not None:
            return self._conditional_peak_widths
        widths = []
        rel_height = np.exp(-0.5)  # height of a gaussian for x=sigma
        for mm, idx, values in zip(
                self.conditional_misfit, self.min_idx, self.values_1d):
            width_height, idx_left, idx_right = peak_width(
                mm, idx, rel_height, negative=True)
            widths.append((width_height, values[idx_left], values[idx_right]))
        self._conditional_peak_widths = tuple(widths)
        return self._conditional_peak_widths

    def grid_search(self):
        """Sample the misfit function by simple grid search."""
        logger.debug(f'Grid search: {self}')

        # small helper function to transform args into a tuple
        def mf(*args):
            return self.misfit_func(args)
        mf = np.vectorize(mf)
        self.misfit = mf(*self.values)
