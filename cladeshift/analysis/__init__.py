#!/usr/bin/env python3
"""
Analysis engines for cladeshift.

This package contains the computational core:
- Ancestral state reconstruction (topology majority or branch-length likelihood)
- Clade change detection
- Rarefaction-corrected resampling test
"""

from .analysis_base import ReconstructionMethod
from .ancestral_states import AncestralStateEstimator, estimate, marginal_probabilities
from .change_detection import CladeRecord, ResultBundle, detect
from .bootstrap_test import BootstrapTester, RarefactionCurve, TestResult, bootstrap_test
from .trait_transform import pool_bundle, prepare_continuous

__all__ = [
    'ReconstructionMethod',
    'AncestralStateEstimator',
    'estimate',
    'marginal_probabilities',
    'CladeRecord',
    'ResultBundle',
    'detect',
    'BootstrapTester',
    'RarefactionCurve',
    'TestResult',
    'bootstrap_test',
    'pool_bundle',
    'prepare_continuous',
]
