#!/usr/bin/env python3
"""
In-memory phylogeny for cladeshift.

Nodes live in an arena indexed by integer id; parent and children are stored
as indices. All walks use explicit stacks so deep, ladder-like trees do not
hit the recursion limit.
"""

import io
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from Bio import Phylo

from ..exceptions import MalformedTreeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Node:
    """
    One node of the arena.

    Attributes:
        node_id: Position of the node in the arena
        parent: Index of the parent node, None for the root
        children: Ordered child indices
        branch_length: Length of the edge leading to this node
        is_tip: Whether the node is a tip
        label: Tip label (tips only; internal labels are kept but unused)
    """
    node_id: int
    parent: Optional[int]
    children: Tuple[int, ...] = ()
    branch_length: Optional[float] = None
    is_tip: bool = False
    label: Optional[str] = None


def iter_phylo_preorder(clade) -> Iterator[Tuple[object, Optional[object]]]:
    """Yield (clade, parent_clade) pairs of a Bio.Phylo clade in pre-order."""
    stack = [(clade, None)]
    while stack:
        current, parent = stack.pop()
        yield current, parent
        for child in reversed(current.clades):
            stack.append((child, current))


class TreeModel:
    """
    Rooted phylogeny with traversal utilities.

    The model is immutable once built. Construction validates the structure
    and raises MalformedTreeError on any defect.
    """

    def __init__(self, nodes: Sequence[Node]):
        self._nodes: List[Node] = list(nodes)
        self._root = self._validate()
        self._label_index: Dict[str, int] = {
            node.label: node.node_id for node in self._nodes if node.is_tip
        }
        logger.debug(f"Built tree with {len(self._nodes)} nodes and {self.n_tips} tips")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_parents(cls, parents: Sequence[Optional[int]],
                     labels: Optional[Dict[int, str]] = None,
                     branch_lengths: Optional[Sequence[Optional[float]]] = None) -> "TreeModel":
        """
        Build a tree from a parent array.

        Args:
            parents: parents[i] is the parent index of node i (None for the root)
            labels: Mapping node index -> tip label
            branch_lengths: branch_lengths[i] is the length of the edge above node i

        Returns:
            Validated TreeModel
        """
        labels = labels or {}
        n = len(parents)
        if branch_lengths is not None and len(branch_lengths) != n:
            raise MalformedTreeError(
                f"Expected {n} branch lengths, got {len(branch_lengths)}"
            )

        children: List[List[int]] = [[] for _ in range(n)]
        for node_id, parent in enumerate(parents):
            if parent is None:
                continue
            if not 0 <= parent < n:
                raise MalformedTreeError(f"Parent index {parent} out of range", node_id=node_id)
            children[parent].append(node_id)

        nodes = []
        for node_id, parent in enumerate(parents):
            nodes.append(Node(
                node_id=node_id,
                parent=parent,
                children=tuple(children[node_id]),
                branch_length=branch_lengths[node_id] if branch_lengths is not None else None,
                is_tip=not children[node_id],
                label=labels.get(node_id),
            ))
        return cls(nodes)

    @classmethod
    def from_phylo(cls, tree) -> "TreeModel":
        """
        Build a tree from a Bio.Phylo Tree or Clade.

        Node ids follow the pre-order of the Bio.Phylo structure, so the same
        walk (iter_phylo_preorder) maps ids back onto the original clades.
        """
        root_clade = getattr(tree, 'root', tree)
        ids: Dict[int, int] = {}
        parents: List[Optional[int]] = []
        lengths: List[Optional[float]] = []
        labels: Dict[int, str] = {}

        for clade, parent in iter_phylo_preorder(root_clade):
            node_id = len(parents)
            ids[id(clade)] = node_id
            parents.append(ids[id(parent)] if parent is not None else None)
            lengths.append(clade.branch_length)
            if clade.is_terminal() and clade.name is not None:
                labels[node_id] = str(clade.name)

        return cls.from_parents(parents, labels=labels, branch_lengths=lengths)

    @classmethod
    def from_newick(cls, newick: str) -> "TreeModel":
        """Parse a Newick string with Bio.Phylo and build a TreeModel."""
        tree = Phylo.read(io.StringIO(newick.strip()), "newick")
        return cls.from_phylo(tree)

    def _validate(self) -> int:
        """Check structural invariants and return the root index."""
        if not self._nodes:
            raise MalformedTreeError("Tree has no nodes")

        roots = []
        for position, node in enumerate(self._nodes):
            if node.node_id != position:
                raise MalformedTreeError(
                    f"Node at position {position} has id {node.node_id}", node_id=node.node_id
                )
            if node.parent is None:
                roots.append(position)
            elif not 0 <= node.parent < len(self._nodes):
                raise MalformedTreeError(f"Parent index {node.parent} out of range", node_id=position)
            elif position not in self._nodes[node.parent].children:
                raise MalformedTreeError(
                    f"Node {position} is not listed among the children of its parent {node.parent}",
                    node_id=position,
                )

            if node.is_tip:
                if node.children:
                    raise MalformedTreeError(f"Tip {position} has children", node_id=position)
                if not node.label:
                    raise MalformedTreeError(f"Tip {position} has no label", node_id=position)
            elif not node.children:
                raise MalformedTreeError(f"Internal node {position} has no children", node_id=position)

            for child in node.children:
                if not 0 <= child < len(self._nodes) or self._nodes[child].parent != position:
                    raise MalformedTreeError(
                        f"Child {child} of node {position} does not point back to it",
                        node_id=position,
                    )

        if len(roots) != 1:
            raise MalformedTreeError(f"Tree must have exactly one root, found {len(roots)}")
        root = roots[0]

        # Every node reachable exactly once from the root
        seen = set()
        stack = [root]
        while stack:
            current = stack.pop()
            if current in seen:
                raise MalformedTreeError("Cycle detected in tree", node_id=current)
            seen.add(current)
            stack.extend(self._nodes[current].children)
        if len(seen) != len(self._nodes):
            unreachable = sorted(set(range(len(self._nodes))) - seen)
            raise MalformedTreeError(
                f"{len(unreachable)} node(s) not reachable from the root (cycle or detached subtree)",
                node_id=unreachable[0],
            )

        labels = [node.label for node in self._nodes if node.is_tip]
        if len(set(labels)) != len(labels):
            duplicates = sorted({label for label in labels if labels.count(label) > 1})
            raise MalformedTreeError(f"Duplicate tip labels: {', '.join(duplicates)}")

        return root

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def root(self) -> int:
        return self._root

    @property
    def n_tips(self) -> int:
        return sum(1 for node in self._nodes if node.is_tip)

    def __len__(self) -> int:
        return len(self._nodes)

    def node(self, node_id: int) -> Node:
        return self._nodes[node_id]

    def parent(self, node_id: int) -> Optional[int]:
        return self._nodes[node_id].parent

    def children(self, node_id: int) -> Tuple[int, ...]:
        return self._nodes[node_id].children

    def is_tip(self, node_id: int) -> bool:
        return self._nodes[node_id].is_tip

    def label(self, node_id: int) -> Optional[str]:
        return self._nodes[node_id].label

    def branch_length(self, node_id: int) -> Optional[float]:
        return self._nodes[node_id].branch_length

    def node_for_label(self, label: str) -> int:
        """Return the tip id carrying a label (KeyError if absent)."""
        return self._label_index[label]

    @property
    def tip_labels(self) -> List[str]:
        """Tip labels in pre-order."""
        return [self._nodes[i].label for i in self.preorder() if self._nodes[i].is_tip]

    def tips(self) -> List[int]:
        return [i for i in self.preorder() if self._nodes[i].is_tip]

    def internal_nodes(self) -> List[int]:
        return [i for i in self.preorder() if not self._nodes[i].is_tip]

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def preorder(self, start: Optional[int] = None) -> Iterator[int]:
        """Yield node ids parent-before-children, children in declared order."""
        stack = [self._root if start is None else start]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(self._nodes[current].children))

    def postorder(self, start: Optional[int] = None) -> Iterator[int]:
        """Yield node ids children-before-parent."""
        stack = [(self._root if start is None else start, False)]
        while stack:
            current, expanded = stack.pop()
            if expanded:
                yield current
                continue
            stack.append((current, True))
            for child in reversed(self._nodes[current].children):
                stack.append((child, False))

    def tip_descendants(self, node_id: int) -> List[int]:
        """Tip ids below (or equal to) a node, in pre-order."""
        return [i for i in self.preorder(node_id) if self._nodes[i].is_tip]

    def missing_branch_lengths(self) -> List[int]:
        """Ids of non-root nodes whose edge length is absent or non-positive."""
        missing = []
        for node in self._nodes:
            if node.node_id == self._root:
                continue
            if node.branch_length is None or not node.branch_length > 0:
                missing.append(node.node_id)
        return missing
