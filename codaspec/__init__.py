# SPDX-License-Identifier: CECILL-2.1
"""
Init file for codaspec.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
__version__ = '0.1.0'

from codaspec.csp_errors import (  # noqa: E402
    CodaSpecError, InvalidParameterError, InsufficientDataError,
    FitDidNotConverge, NumericDivergenceError)
from codaspec.csp_data_types import (  # noqa: E402
    FrequencyBand, PhaseAttenuationParams, SourcePhysicsParams,
    SpectralObservation, ReferenceMw, BandMeasurement, FitResult,
    EnergyInfo, SiteTerm, UnitFailure, BatchResult, CalibrationResult)
from codaspec.csp_config import (  # noqa: E402
    Config, default_config, read_config)
from codaspec.csp_source_model import (  # noqa: E402
    SourceSpectrumModel, amplitude)
from codaspec.csp_spectral_fit import fit, fit_events  # noqa: E402
from codaspec.csp_radiated_energy import total_energy  # noqa: E402
from codaspec.csp_site_terms import solve_site_terms  # noqa: E402
from codaspec.csp_batch import CancellationToken  # noqa: E402
from codaspec.csp_pipeline import calibrate, measure_mws  # noqa: E402
