# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Shared fixtures for codaspec tests.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import pytest
from codaspec.csp_data_types import (
    SourcePhysicsParams, PhaseAttenuationParams)
from codaspec.csp_config import default_config


@pytest.fixture
def source_params():
    """MDAC source parameters for a generic crustal Lg setting."""
    return SourcePhysicsParams(
        sigma=0.3, del_sigma=0., psi=0.25, del_psi=0., zeta=1.,
        m0_ref=1e9, alpha_s=6000., beta_s=3500., rho_s=2700.,
        alpha_r=6000., beta_r=3500., rho_r=2700.,
        rad_pat_p=0.44, rad_pat_s=0.6)


@pytest.fixture
def path_params():
    return PhaseAttenuationParams(
        phase='Lg', q0=210., del_q0=0., gamma0=0.65, del_gamma0=0.,
        u0=7900., eta=1.1, del_eta=0., dist_crit=0.001, snr_threshold=2.)


@pytest.fixture
def config():
    return default_config()
