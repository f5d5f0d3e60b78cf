#!/usr/bin/env python3
"""
Ancestral state reconstruction for a binary trait.

Two strategies are available:
- topology: each internal node takes the state held by a strict majority of
  its tip descendants; exact ties give 0 (absence).
- branch-length: marginal reconstruction under a two-state, equal-rates
  continuous-time Markov model. Conditional likelihoods are pruned from the
  tips to the root, an outside pass carries the rest of the tree back down,
  and each node's posterior of state 1 is thresholded at 0.5.
"""

import logging
import math
from typing import Any, Callable, Dict, Mapping, Optional, Union

import numpy as np
from scipy.optimize import minimize_scalar

from ..core.constants import (
    MARGINAL_THRESHOLD, RATE_LOWER_BOUND, RATE_UPPER_BOUND, STATE_ABSENT, STATE_PRESENT
)
from ..core.tree_model import TreeModel
from ..exceptions import ConfigurationError, MissingBranchLengthError
from .analysis_base import ReconstructionMethod, check_binary_states, check_labels

logger = logging.getLogger(__name__)

ROOT_PRIOR = np.array([0.5, 0.5])


def transition_matrix(branch_length: float, rate: float) -> np.ndarray:
    """Two-state equal-rates transition probabilities over one branch."""
    p_change = -0.5 * math.expm1(-2.0 * rate * branch_length)
    return np.array([[1.0 - p_change, p_change],
                     [p_change, 1.0 - p_change]])


def _tip_vector(state: int) -> np.ndarray:
    vector = np.zeros(2)
    vector[state] = 1.0
    return vector


def _require_branch_lengths(tree: TreeModel) -> None:
    missing = tree.missing_branch_lengths()
    if missing:
        raise MissingBranchLengthError(
            f"Branch-length reconstruction needs positive lengths on every edge; "
            f"{len(missing)} edge(s) lack one",
            node_ids=missing,
        )


def _prune(tree: TreeModel, states: Mapping[str, int], rate: float):
    """
    Felsenstein pruning with per-node rescaling.

    Returns:
        Tuple of (partials, messages, log_likelihood) where partials[n] is the
        normalized conditional likelihood vector of node n and messages[n] is
        the vector node n sends to its parent (P(t_n) @ partials[n]).
    """
    partials: Dict[int, np.ndarray] = {}
    messages: Dict[int, np.ndarray] = {}
    log_scale = 0.0

    for node in tree.postorder():
        if tree.is_tip(node):
            vector = _tip_vector(states[tree.label(node)])
        else:
            vector = np.ones(2)
            for child in tree.children(node):
                vector = vector * messages[child]
            total = vector.sum()
            vector = vector / total
            log_scale += math.log(total)
        partials[node] = vector
        if node != tree.root:
            messages[node] = transition_matrix(tree.branch_length(node), rate) @ vector

    log_likelihood = log_scale + math.log(float(ROOT_PRIOR @ partials[tree.root]))
    return partials, messages, log_likelihood


def _check_rate(rate: float) -> None:
    if not rate > 0:
        raise ConfigurationError(f"Transition rate must be positive, got {rate}",
                                 context={'rate': rate})


def log_likelihood(tree: TreeModel, tip_states: Mapping[str, Any], rate: float) -> float:
    """Log-likelihood of the tip states under the equal-rates model."""
    check_labels(tree, tip_states.keys(), "tip states")
    states = check_binary_states(tip_states)
    _require_branch_lengths(tree)
    _check_rate(rate)
    return _prune(tree, states, rate)[2]


def estimate_rate(tree: TreeModel, tip_states: Mapping[str, Any]) -> float:
    """
    Maximum-likelihood transition rate.

    The search runs over log(rate) inside [RATE_LOWER_BOUND, RATE_UPPER_BOUND]
    divided by the mean branch length, so the bounds follow the tree's scale.
    """
    check_labels(tree, tip_states.keys(), "tip states")
    states = check_binary_states(tip_states)
    _require_branch_lengths(tree)
    return _estimate_rate(tree, states)


def _estimate_rate(tree: TreeModel, states: Mapping[str, int]) -> float:
    lengths = [tree.branch_length(n) for n in range(len(tree)) if n != tree.root]
    mean_length = float(np.mean(lengths))
    bounds = (math.log(RATE_LOWER_BOUND / mean_length), math.log(RATE_UPPER_BOUND / mean_length))

    def negative_log_likelihood(log_rate: float) -> float:
        return -_prune(tree, states, math.exp(log_rate))[2]

    result = minimize_scalar(negative_log_likelihood, bounds=bounds, method='bounded')
    rate = float(math.exp(result.x))
    logger.debug(f"ML transition rate: {rate:.6g} (lnL = {-result.fun:.4f})")
    return rate


def _marginals(tree: TreeModel, states: Mapping[str, int], rate: Optional[float]) -> Dict[int, float]:
    if len(tree) == 1:
        return {tree.root: float(states[tree.label(tree.root)])}

    _require_branch_lengths(tree)
    if rate is None:
        rate = _estimate_rate(tree, states)
    else:
        _check_rate(rate)

    partials, messages, _ = _prune(tree, states, rate)

    outside: Dict[int, np.ndarray] = {tree.root: ROOT_PRIOR}
    probabilities: Dict[int, float] = {}
    for node in tree.preorder():
        posterior = outside[node] * partials[node]
        probabilities[node] = float(posterior[STATE_PRESENT] / posterior.sum())

        children = tree.children(node)
        for child in children:
            above = outside[node].copy()
            for sibling in children:
                if sibling != child:
                    above = above * messages[sibling]
            vector = above @ transition_matrix(tree.branch_length(child), rate)
            outside[child] = vector / vector.sum()

    return probabilities


def marginal_probabilities(tree: TreeModel, tip_states: Mapping[str, Any],
                           rate: Optional[float] = None) -> Dict[int, float]:
    """
    Posterior probability of state 1 at every node.

    Args:
        tree: Tree with positive branch lengths
        tip_states: Mapping tip label -> 0/1
        rate: Transition rate; estimated by maximum likelihood when None

    Returns:
        Mapping node id -> P(state = 1)
    """
    check_labels(tree, tip_states.keys(), "tip states")
    states = check_binary_states(tip_states)
    return _marginals(tree, states, rate)


def _topology_states(tree: TreeModel, states: Mapping[str, int], **_) -> Dict[int, int]:
    counts: Dict[int, tuple] = {}
    node_states: Dict[int, int] = {}
    for node in tree.postorder():
        if tree.is_tip(node):
            state = states[tree.label(node)]
            counts[node] = (1 - state, state)
            node_states[node] = state
            continue
        absent = sum(counts[child][0] for child in tree.children(node))
        present = sum(counts[child][1] for child in tree.children(node))
        counts[node] = (absent, present)
        node_states[node] = STATE_PRESENT if present > absent else STATE_ABSENT
    return node_states


def _branch_length_states(tree: TreeModel, states: Mapping[str, int],
                          rate: Optional[float] = None, **_) -> Dict[int, int]:
    probabilities = _marginals(tree, states, rate)
    node_states = {}
    for node, probability in probabilities.items():
        if tree.is_tip(node):
            node_states[node] = states[tree.label(node)]
        else:
            node_states[node] = STATE_PRESENT if probability >= MARGINAL_THRESHOLD else STATE_ABSENT
    return node_states


_STRATEGIES: Dict[ReconstructionMethod, Callable[..., Dict[int, int]]] = {
    ReconstructionMethod.TOPOLOGY: _topology_states,
    ReconstructionMethod.BRANCH_LENGTH: _branch_length_states,
}


def estimate(tree: TreeModel, tip_states: Mapping[str, Any],
             method: Union[str, ReconstructionMethod] = ReconstructionMethod.TOPOLOGY,
             rate: Optional[float] = None) -> Dict[int, int]:
    """
    Reconstruct a 0/1 state for every node of the tree.

    Args:
        tree: Tree to reconstruct on
        tip_states: Mapping tip label -> observed state (0 or 1)
        method: 'topology' or 'branch-length'
        rate: Fixed transition rate for 'branch-length' (ML estimate if None)

    Returns:
        Mapping node id -> state, tips included with their observed state

    Raises:
        LabelMismatchError: tip states do not cover exactly the tree's tips
        InvalidTraitValueError: a state is not 0/1
        MissingBranchLengthError: 'branch-length' on a tree lacking edge lengths
        ConfigurationError: a fixed rate that is not positive
    """
    method = ReconstructionMethod.parse(method)
    check_labels(tree, tip_states.keys(), "tip states")
    states = check_binary_states(tip_states)
    node_states = _STRATEGIES[method](tree, states, rate=rate)
    n_present = sum(1 for n in tree.internal_nodes() if node_states[n] == STATE_PRESENT)
    logger.debug(
        f"{method.value} reconstruction: {n_present}/{len(tree) - tree.n_tips} internal nodes in state 1"
    )
    return node_states


class AncestralStateEstimator:
    """
    Reconstruction strategy bound to its options.

    The estimator keeps no state between calls; the same inputs always give
    the same mapping.
    """

    def __init__(self, method: Union[str, ReconstructionMethod] = ReconstructionMethod.TOPOLOGY,
                 rate: Optional[float] = None):
        self.method = ReconstructionMethod.parse(method)
        self.rate = rate

    def estimate(self, tree: TreeModel, tip_states: Mapping[str, Any]) -> Dict[int, int]:
        return estimate(tree, tip_states, self.method, rate=self.rate)

    def __repr__(self) -> str:
        return f"AncestralStateEstimator(method={self.method.value!r}, rate={self.rate!r})"
