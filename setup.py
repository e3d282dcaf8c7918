# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
A minimal setup script for codaspec.

All the configuration is in pyproject.toml.
"""
from setuptools import setup

setup()
