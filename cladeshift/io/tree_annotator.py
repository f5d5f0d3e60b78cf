#!/usr/bin/env python3
"""
Tree annotation module for cladeshift.

Writes the analysed tree as Newick with a bracketed comment on every node
giving its reconstructed state and whether it is a change point, e.g.
``(A[&state=0,change=0]:0.1,B[&state=1,change=1]:0.2)[&state=0,change=0];``.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, Mapping

from ..core.tree_model import TreeModel

logger = logging.getLogger(__name__)

_NEEDS_QUOTES = re.compile(r"[\s\(\)\[\]:;,']")


def format_label(label: str) -> str:
    """Quote a Newick label when it holds whitespace or Newick punctuation."""
    if _NEEDS_QUOTES.search(label):
        return "'" + label.replace("'", "''") + "'"
    return label


def format_annotation(state: int, is_change: bool) -> str:
    return f"[&state={state},change={int(is_change)}]"


class TreeAnnotator:
    """
    Handles tree annotation with reconstructed states and change flags.
    """

    def __init__(self, branch_length_format: str = "{:.10g}"):
        """
        Initialize the tree annotator.

        Args:
            branch_length_format: Format applied to every edge length
        """
        self.branch_length_format = branch_length_format

    def to_newick(self, tree: TreeModel, node_states: Mapping[int, int],
                  node_changes: Iterable[int]) -> str:
        """
        Render the annotated tree as a Newick string.

        Args:
            tree: Analysed tree
            node_states: Mapping node id -> state
            node_changes: Change node ids

        Returns:
            Newick text ending with ';'
        """
        changes = set(node_changes)
        rendered: Dict[int, str] = {}

        for node in tree.postorder():
            if tree.is_tip(node):
                text = format_label(tree.label(node))
            else:
                text = "(" + ",".join(rendered.pop(child) for child in tree.children(node)) + ")"
            text += format_annotation(node_states[node], node in changes)
            length = tree.branch_length(node)
            if length is not None and node != tree.root:
                text += ":" + self.branch_length_format.format(length)
            rendered[node] = text

        return rendered[tree.root] + ";"

    def write_annotated_tree(self, tree: TreeModel, node_states: Mapping[int, int],
                             node_changes: Iterable[int], output_path: Path) -> Path:
        """
        Write the annotated Newick file.

        Args:
            tree: Analysed tree
            node_states: Mapping node id -> state
            node_changes: Change node ids
            output_path: File to write

        Returns:
            output_path
        """
        output_path = Path(output_path)
        newick = self.to_newick(tree, node_states, node_changes)
        output_path.write_text(newick + "\n")
        logger.debug(f"Created annotated tree: {output_path}")
        return output_path
