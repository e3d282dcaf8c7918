# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Run independent units of work (events, bands) on a pool of threads.

Every unit produces an immutable result, merged by unit key in sorted
order, so that the output does not depend on task completion order.
Errors from one unit are logged and collected, and never abort the batch.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from codaspec.csp_errors import CodaSpecError
from codaspec.csp_data_types import UnitFailure, BatchResult
logger = logging.getLogger(__name__.rsplit('.', maxsplit=1)[-1])

# returned by tasks which were skipped after a cancellation
_SKIPPED = object()


class CancellationToken():
    """
    Cooperative cancellation flag.

    The flag is checked before each unit of work is started: units already
    running are completed and their results are kept.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()


def _is_cancelled(cancel_token):
    return cancel_token is not None and cancel_token.cancelled


def run_batch(func, units, n_workers=1, cancel_token=None, label='unit'):
    """
    Apply func to each unit.

    :param func: function taking a unit and returning its result
    :param units: iterable of sortable unit keys (event ids, bands)
    :param n_workers: number of worker threads (1 means serial execution)
    :param cancel_token: optional :class:`CancellationToken`
    :param label: name of the unit kind, for log messages
    :return: :class:`codaspec.csp_data_types.BatchResult`
    """
    units = sorted(set(units))
    results = {}
    failures = []

    def _task(unit):
        if _is_cancelled(cancel_token):
            return _SKIPPED
        return func(unit)

    def _collect(unit, run):
        try:
            result = run()
        except CodaSpecError as err:
            logger.warning(f'{label} {unit}: {err}')
            failures.append(UnitFailure(unit, err))
            return
        if result is not _SKIPPED:
            results[unit] = result

    if n_workers <= 1:
        for unit in units:
            if _is_cancelled(cancel_token):
                break
            _collect(unit, lambda unit=unit: func(unit))
    else:
        with ThreadPoolExecutor(max_workers=n_workers) as pool:
            future_map = {pool.submit(_task, unit): unit for unit in units}
            for fut in as_completed(future_map):
                _collect(future_map[fut], fut.result)
    cancelled = _is_cancelled(cancel_token)
    if cancelled:
        logger.warning(
            f'Batch cancelled: {len(results)} {label}(s) of {len(units)} '
            'completed')
    results = {unit: results[unit] for unit in sorted(results)}
    failures.sort(key=lambda failure: failure.unit)
    return BatchResult(results, failures, cancelled)
