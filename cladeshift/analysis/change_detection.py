#!/usr/bin/env python3
"""
Clade change detection.

A single pre-order walk assigns every tip to the normal or change bucket of
the clade it belongs to. A clade starts at the root and at every internal
node whose state differs from the origination state of the clade above it.
A flip followed by a nested flip back is recorded as two change points.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..core.tree_model import TreeModel
from .analysis_base import check_labels

logger = logging.getLogger(__name__)


@dataclass
class CladeRecord:
    """
    One clade of the walk.

    Attributes:
        node: Node where the origination state was set (root or change node)
        origination: Origination state of the clade
        normal_tips: Tip ids whose state matches the origination
        change_tips: Tip ids whose state differs from the origination
        normal_values: Continuous values of normal_tips, same order
        change_values: Continuous values of change_tips, same order
    """
    node: int
    origination: int
    normal_tips: List[int] = field(default_factory=list)
    change_tips: List[int] = field(default_factory=list)
    normal_values: List[float] = field(default_factory=list)
    change_values: List[float] = field(default_factory=list)


@dataclass
class ResultBundle:
    """
    Output of change detection.

    Attributes:
        clades: Clade records in traversal order
        node_changes: Change node ids in traversal order (each listed once)
    """
    clades: List[CladeRecord]
    node_changes: List[int]

    @property
    def normal_val(self) -> List[List[float]]:
        return [list(clade.normal_values) for clade in self.clades]

    @property
    def change_val(self) -> List[List[float]]:
        return [list(clade.change_values) for clade in self.clades]

    @property
    def n_normal(self) -> int:
        return sum(len(clade.normal_values) for clade in self.clades)

    @property
    def n_change(self) -> int:
        return sum(len(clade.change_values) for clade in self.clades)

    @property
    def n_tips(self) -> int:
        return self.n_normal + self.n_change

    def tip_clades(self) -> Dict[int, int]:
        """Mapping tip id -> node where its clade's origination state was set."""
        mapping = {}
        for clade in self.clades:
            for tip in clade.normal_tips + clade.change_tips:
                mapping[tip] = clade.node
        return mapping

    def to_dict(self, tree: Optional[TreeModel] = None) -> Dict[str, Any]:
        """Plain-data view, with tip labels when the tree is supplied."""
        def describe(tips: Sequence[int]) -> List[Any]:
            return [tree.label(t) for t in tips] if tree is not None else list(tips)

        return {
            'normal_val': self.normal_val,
            'change_val': self.change_val,
            'node_changes': list(self.node_changes),
            'clades': [
                {
                    'node': clade.node,
                    'origination': clade.origination,
                    'normal_tips': describe(clade.normal_tips),
                    'change_tips': describe(clade.change_tips),
                }
                for clade in self.clades
            ],
        }


def detect(tree: TreeModel, node_states: Mapping[int, int],
           tip_continuous: Mapping[str, float],
           tip_labels: Optional[Sequence[str]] = None) -> ResultBundle:
    """
    Partition tip values into normal and change buckets per clade.

    Args:
        tree: Tree to walk
        node_states: Mapping node id -> state for every node, tips included
        tip_continuous: Mapping tip label -> continuous value
        tip_labels: Labels expected in tip_continuous (defaults to the tree's tips)

    Returns:
        ResultBundle with normal_val, change_val and node_changes

    Raises:
        LabelMismatchError: values do not cover exactly the tree's tips
        ValueError: node_states does not cover every node
    """
    check_labels(tree, tip_labels if tip_labels is not None else tip_continuous.keys(),
                 "continuous trait data")
    if tip_labels is not None:
        check_labels(tree, tip_continuous.keys(), "continuous trait data")
    absent = [n for n in range(len(tree)) if n not in node_states]
    if absent:
        raise ValueError(f"node_states lacks {len(absent)} node(s), first missing id {absent[0]}")

    root = tree.root
    clades = [CladeRecord(node=root, origination=node_states[root])]
    node_changes: List[int] = []

    stack = [(root, 0)]
    while stack:
        node, clade_index = stack.pop()
        clade = clades[clade_index]
        state = node_states[node]

        if tree.is_tip(node):
            value = float(tip_continuous[tree.label(node)])
            if state == clade.origination:
                clade.normal_tips.append(node)
                clade.normal_values.append(value)
            else:
                clade.change_tips.append(node)
                clade.change_values.append(value)
                node_changes.append(node)
            continue

        if state != clade.origination:
            node_changes.append(node)
            clades.append(CladeRecord(node=node, origination=state))
            clade_index = len(clades) - 1

        for child in reversed(tree.children(node)):
            stack.append((child, clade_index))

    bundle = ResultBundle(clades=clades, node_changes=node_changes)
    logger.debug(
        f"Change detection: {len(clades)} clade(s), {len(node_changes)} change point(s), "
        f"{bundle.n_normal} normal / {bundle.n_change} change tip(s)"
    )
    return bundle
