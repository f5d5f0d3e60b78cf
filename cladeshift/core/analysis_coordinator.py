#!/usr/bin/env python3
"""
Analysis coordinator for cladeshift.

This module chains the analysis steps of one run: input validation,
ancestral state reconstruction, change detection, pooling, the t-test sanity
check and the resampling test.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np
from scipy import stats

from ..analysis.analysis_base import ReconstructionMethod, check_binary_states, check_labels
from ..analysis.ancestral_states import AncestralStateEstimator, estimate_rate
from ..analysis.bootstrap_test import BootstrapTester, TestResult
from ..analysis.change_detection import ResultBundle, detect
from ..analysis.trait_transform import POOLING_MODES, pool_bundle, prepare_continuous
from ..exceptions import MissingBranchLengthError
from .constants import (
    DEFAULT_ALTERNATIVE, DEFAULT_BLOCK_SIZE, DEFAULT_ENVELOPE, DEFAULT_POOLING,
    DEFAULT_RAREFACTION_REPEATS, DEFAULT_REPLICATES, DEFAULT_SEED, DEFAULT_STATISTIC,
    DEFAULT_THREADS
)
from .tree_model import TreeModel

logger = logging.getLogger(__name__)


@dataclass
class AnalysisReport:
    """
    Everything produced by one coordinated run.

    Attributes:
        requested_method: Reconstruction method asked for
        method: Reconstruction method actually used (differs after a fallback)
        rate: Transition rate used by branch-length reconstruction
        node_states: Mapping node id -> state
        bundle: Change detection output
        distribution: Pooled values, normal first then change
        subset_indices: Positions of the change values in distribution
        test: Resampling test result
        ttest: Welch t-test summary, when it could be computed
        warnings: Non-fatal issues met during the run
    """
    requested_method: str
    method: str
    rate: Optional[float]
    node_states: Dict[int, int]
    bundle: ResultBundle
    distribution: np.ndarray
    subset_indices: np.ndarray
    test: TestResult
    ttest: Optional[Dict[str, float]] = None
    warnings: List[str] = field(default_factory=list)
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def fallback_used(self) -> bool:
        return self.method != self.requested_method

    def to_dict(self, tree: Optional[TreeModel] = None) -> Dict[str, Any]:
        return {
            'parameters': dict(self.parameters),
            'reconstruction': {
                'requested_method': self.requested_method,
                'method': self.method,
                'rate': self.rate,
                'fallback_used': self.fallback_used,
            },
            'changes': self.bundle.to_dict(tree),
            'n_normal': self.bundle.n_normal,
            'n_change': self.bundle.n_change,
            'ttest': self.ttest,
            'test': self.test.to_dict(),
            'warnings': list(self.warnings),
        }


def welch_ttest(normal: np.ndarray, change: np.ndarray) -> Optional[Dict[str, float]]:
    """
    Welch two-sample t-test between the normal and change values.

    Returns None when either group has fewer than two values or the test is
    undefined (zero variance in both groups).
    """
    if len(normal) < 2 or len(change) < 2:
        return None
    result = stats.ttest_ind(normal, change, equal_var=False)
    statistic = float(result.statistic)
    pvalue = float(result.pvalue)
    if not (math.isfinite(statistic) and math.isfinite(pvalue)):
        return None
    return {'statistic': statistic, 'pvalue': pvalue}


class AnalysisCoordinator:
    """
    Runs one complete clade-change analysis.

    The coordinator holds the run options; the tree and trait data are
    passed to run() so one coordinator can analyse several datasets with the
    same seed and settings.
    """

    def __init__(self,
                 method: Union[str, ReconstructionMethod] = ReconstructionMethod.TOPOLOGY,
                 rate: Optional[float] = None,
                 fallback_to_topology: bool = False,
                 statistic: Union[str, Callable] = DEFAULT_STATISTIC,
                 replicates: int = DEFAULT_REPLICATES,
                 alternative: str = DEFAULT_ALTERNATIVE,
                 envelope: float = DEFAULT_ENVELOPE,
                 rarefaction: bool = False,
                 rarefaction_repeats: int = DEFAULT_RAREFACTION_REPEATS,
                 pooling: str = DEFAULT_POOLING,
                 log_transform: bool = True,
                 ttest: bool = True,
                 seed: int = DEFAULT_SEED,
                 threads: Union[int, str] = DEFAULT_THREADS,
                 block_size: int = DEFAULT_BLOCK_SIZE,
                 progress_callback: Optional[Callable] = None):
        """
        Initialize analysis coordinator.

        Args:
            method: 'topology' or 'branch-length'
            rate: Fixed transition rate for branch-length reconstruction
            fallback_to_topology: Retry with topology when branch lengths are unusable
            statistic: 'median', 'mean' or a callable
            replicates: Null draws per subset size
            alternative: 'two-sided', 'less' or 'greater'
            envelope: Level of the expvar interval
            rarefaction: Compute the p-value curve over subset sizes
            rarefaction_repeats: Random subsets per reduced size
            pooling: 'flat' or 'clade'
            log_transform: Log-transform body sizes
            ttest: Run the Welch t-test sanity check
            seed: Run seed
            threads: Worker threads for resampling, or 'auto'
            block_size: Replicates per worker block
            progress_callback: Optional callable(completed_blocks, total_blocks)
        """
        if pooling not in POOLING_MODES:
            raise ValueError(f"Unknown pooling '{pooling}'. Valid options: {', '.join(POOLING_MODES)}")

        self.method = ReconstructionMethod.parse(method)
        self.rate = rate
        self.fallback_to_topology = fallback_to_topology
        self.rarefaction = rarefaction
        self.pooling = pooling
        self.log_transform = log_transform
        self.run_ttest = ttest
        self.tester = BootstrapTester(
            statistic=statistic,
            replicates=replicates,
            alternative=alternative,
            envelope=envelope,
            rarefaction_repeats=rarefaction_repeats,
            seed=seed,
            threads=threads,
            block_size=block_size,
            progress_callback=progress_callback,
        )
        self.parameters = {
            'method': self.method.value,
            'rate': rate,
            'fallback_to_topology': fallback_to_topology,
            'statistic': self.tester.statistic_name,
            'replicates': replicates,
            'alternative': alternative,
            'envelope': envelope,
            'rarefaction': rarefaction,
            'rarefaction_repeats': rarefaction_repeats,
            'pooling': pooling,
            'log_transform': log_transform,
            'seed': seed,
            'threads': threads,
            'block_size': block_size,
        }

    @classmethod
    def from_config(cls, config, progress_callback: Optional[Callable] = None) -> "AnalysisCoordinator":
        """Build a coordinator from a validated CladeShiftConfig."""
        return cls(
            method=config.reconstruction.method,
            rate=config.reconstruction.rate,
            fallback_to_topology=config.reconstruction.fallback_to_topology,
            statistic=config.testing.statistic,
            replicates=config.testing.replicates,
            alternative=config.testing.alternative,
            envelope=config.testing.envelope,
            rarefaction=config.testing.rarefaction,
            rarefaction_repeats=config.testing.rarefaction_repeats,
            pooling=config.testing.pooling,
            log_transform=config.testing.log_transform,
            ttest=config.testing.ttest,
            seed=config.computational.seed,
            threads=config.computational.threads,
            block_size=config.computational.block_size,
            progress_callback=progress_callback,
        )

    def reconstruct(self, tree: TreeModel, tip_states: Mapping[str, Any],
                    warnings: Optional[List[str]] = None) -> Tuple[Dict[int, int], ReconstructionMethod, Optional[float]]:
        """
        Reconstruct node states, falling back to topology when allowed.

        Returns:
            Tuple of (node_states, method used, rate used)
        """
        method = self.method
        rate = self.rate
        if method is ReconstructionMethod.BRANCH_LENGTH:
            try:
                if rate is None and len(tree) > 1:
                    rate = estimate_rate(tree, tip_states)
                    logger.info(f"Estimated transition rate: {rate:.6g}")
                node_states = AncestralStateEstimator(method, rate=rate).estimate(tree, tip_states)
                return node_states, method, rate
            except MissingBranchLengthError as e:
                if not self.fallback_to_topology:
                    raise
                message = f"{e.message}; falling back to topology reconstruction"
                logger.warning(message)
                if warnings is not None:
                    warnings.append(message)
                method = ReconstructionMethod.TOPOLOGY
                rate = None

        node_states = AncestralStateEstimator(method).estimate(tree, tip_states)
        return node_states, method, rate

    def run(self, tree: TreeModel, sizes: Mapping[str, Any], tip_states: Mapping[str, Any],
            predator_sizes: Optional[Mapping[str, Any]] = None) -> AnalysisReport:
        """
        Run the full analysis.

        Args:
            tree: Phylogeny
            sizes: Mapping tip label -> body size
            tip_states: Mapping tip label -> binary state
            predator_sizes: Optional mapping tip label -> predator size

        Returns:
            AnalysisReport

        Raises:
            LabelMismatchError: trait data does not match the tree's tips
            InvalidTraitValueError: unusable state or size
            MissingBranchLengthError: branch-length method without lengths and no fallback
            EmptySubsetError: no change events were found
        """
        check_labels(tree, tip_states.keys(), "binary trait data")
        check_labels(tree, sizes.keys(), "body size data")
        states = check_binary_states(tip_states)
        values = prepare_continuous(sizes, predator_sizes, log_transform=self.log_transform)

        warnings: List[str] = []
        node_states, method, rate = self.reconstruct(tree, states, warnings)
        logger.info(f"Reconstructed ancestral states with the {method.value} method")

        bundle = detect(tree, node_states, values)
        logger.info(
            f"Found {len(bundle.node_changes)} change point(s) in {len(bundle.clades)} clade(s); "
            f"{bundle.n_change} of {bundle.n_tips} tips measured at a change"
        )

        distribution, subset_indices = pool_bundle(bundle, self.pooling)

        ttest_summary = None
        if self.run_ttest:
            normal = distribution[:len(distribution) - len(subset_indices)]
            ttest_summary = welch_ttest(normal, distribution[subset_indices])
            if ttest_summary is None:
                logger.debug("Welch t-test skipped: a group has fewer than two values or no variance")
            else:
                logger.info(f"Welch t-test: t = {ttest_summary['statistic']:.4f}, "
                            f"p = {ttest_summary['pvalue']:.4f}")

        test = self.tester.test(distribution, subset_indices, rarefaction=self.rarefaction)

        return AnalysisReport(
            requested_method=self.method.value,
            method=method.value,
            rate=rate,
            node_states=node_states,
            bundle=bundle,
            distribution=distribution,
            subset_indices=subset_indices,
            test=test,
            ttest=ttest_summary,
            warnings=warnings,
            parameters=dict(self.parameters),
        )
