# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Exceptions raised by codaspec.

All the exceptions are local to one unit of work (one event, one station,
one frequency band): batch routines catch them, log a warning and go on
with the next unit.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import numpy as np


class CodaSpecError(Exception):
    """Base class for codaspec exceptions."""


class InvalidParameterError(CodaSpecError, ValueError):
    """Malformed physical input (frequency, stress, band, medium)."""


class InsufficientDataError(CodaSpecError, ValueError):
    """Not enough usable bands or observations for the requested unit."""


class FitDidNotConverge(CodaSpecError, RuntimeError):
    """
    The optimizer exhausted its iteration budget.

    The best-effort result is available as ``partial_result``
    (a :class:`codaspec.csp_data_types.FitResult` flagged as not converged).
    """

    def __init__(self, msg, partial_result=None):
        super().__init__(msg)
        self.partial_result = partial_result


class NumericDivergenceError(CodaSpecError, ArithmeticError):
    """NaN or infinity produced during a computation."""


def check_finite(values, what):
    """
    Raise NumericDivergenceError if values contain NaN or infinity.

    :param values: scalar or array-like
    :param what: description of the values, used in the error message
    :return: values, unchanged
    """
    if not np.all(np.isfinite(values)):
        raise NumericDivergenceError(f'{what}: non-finite value encountered')
    return values
