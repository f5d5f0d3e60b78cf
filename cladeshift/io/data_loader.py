#!/usr/bin/env python3
"""
Input loading for cladeshift.

Trees are read from Newick with Bio.Phylo and converted to a TreeModel. Trait
tables are CSV (comma, tab or semicolon delimited, detected from the header).
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from Bio import Phylo
from Bio.Phylo.NewickIO import NewickError

from ..core.constants import DEFAULT_LABEL_COLUMN, DEFAULT_SIZE_COLUMN, DEFAULT_STATE_COLUMN
from ..core.tree_model import TreeModel
from ..exceptions import DataLoadError, MalformedTreeError

logger = logging.getLogger(__name__)


@dataclass
class TraitTable:
    """
    Per-taxon trait values as read from the table, still unconverted.

    Attributes:
        labels: Tip labels in file order
        states: label -> binary state text
        sizes: label -> body size text
        predator_sizes: label -> predator size text, when a predator column is used
        source: File the table was read from
    """
    labels: List[str]
    states: Dict[str, str]
    sizes: Dict[str, str]
    predator_sizes: Optional[Dict[str, str]] = None
    source: Optional[Path] = None
    columns: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.labels)


def load_tree(tree_path: Union[str, Path]) -> TreeModel:
    """
    Read a rooted Newick tree.

    Args:
        tree_path: Path to the Newick file (first tree is used)

    Returns:
        TreeModel built from the first tree in the file

    Raises:
        DataLoadError: the file is missing or not valid Newick
        MalformedTreeError: the parsed tree is structurally invalid
    """
    tree_path = Path(tree_path)
    if not tree_path.exists():
        raise DataLoadError(f"Tree file not found: {tree_path}", file_path=tree_path)

    try:
        text = tree_path.read_text().strip()
        if not text:
            raise DataLoadError(f"Tree file is empty: {tree_path}", file_path=tree_path)
        phylo_tree = next(Phylo.parse(io.StringIO(text), "newick"))
    except DataLoadError:
        raise
    except (StopIteration, NewickError, ValueError, OSError) as e:
        raise DataLoadError(f"Could not parse Newick tree from {tree_path}: {e}",
                            file_path=tree_path) from e

    try:
        tree = TreeModel.from_phylo(phylo_tree)
    except MalformedTreeError as e:
        e.context['file_path'] = str(tree_path)
        raise

    logger.info(f"Loaded tree with {tree.n_tips} tips and {len(tree)} nodes from {tree_path}")
    return tree


def _sniff_dialect(sample: str):
    if not sample:
        return csv.excel
    try:
        return csv.Sniffer().sniff(sample, delimiters=",\t;")
    except csv.Error:
        return csv.excel


def load_traits(traits_path: Union[str, Path],
                label_column: str = DEFAULT_LABEL_COLUMN,
                size_column: str = DEFAULT_SIZE_COLUMN,
                state_column: str = DEFAULT_STATE_COLUMN,
                predator_column: Optional[str] = None) -> TraitTable:
    """
    Read the per-taxon trait table.

    Args:
        traits_path: CSV file with a header row
        label_column: Column holding tip labels
        size_column: Column holding body size
        state_column: Column holding the binary trait
        predator_column: Optional column holding predator size

    Returns:
        TraitTable with raw text values

    Raises:
        DataLoadError: missing file, missing columns, blank or duplicate labels
    """
    traits_path = Path(traits_path)
    if not traits_path.exists():
        raise DataLoadError(f"Trait file not found: {traits_path}", file_path=traits_path)

    try:
        raw_text = traits_path.read_text(encoding='utf-8-sig')
    except (OSError, UnicodeDecodeError) as e:
        raise DataLoadError(f"Could not read trait file {traits_path}: {e}",
                            file_path=traits_path) from e

    reader = csv.DictReader(io.StringIO(raw_text), dialect=_sniff_dialect(raw_text[:1024]))
    columns = [c.strip() for c in (reader.fieldnames or [])]
    required = [label_column, size_column, state_column]
    if predator_column:
        required.append(predator_column)
    absent = [c for c in required if c not in columns]
    if absent:
        raise DataLoadError(
            f"Trait file {traits_path} lacks column(s): {', '.join(absent)} "
            f"(found: {', '.join(columns) or 'none'})",
            file_path=traits_path,
            context={'missing_columns': absent},
        )

    labels: List[str] = []
    states: Dict[str, str] = {}
    sizes: Dict[str, str] = {}
    predators: Dict[str, str] = {}

    for line_number, row in enumerate(reader, start=2):
        row = {k.strip(): (v or '').strip() for k, v in row.items() if k is not None}
        label = row[label_column]
        if not label:
            raise DataLoadError(f"Blank label on line {line_number} of {traits_path}",
                                file_path=traits_path, context={'line': line_number})
        if label in states:
            raise DataLoadError(f"Duplicate label '{label}' on line {line_number} of {traits_path}",
                                file_path=traits_path, context={'line': line_number})
        labels.append(label)
        states[label] = row[state_column]
        sizes[label] = row[size_column]
        if predator_column:
            predators[label] = row[predator_column]

    if not labels:
        raise DataLoadError(f"Trait file {traits_path} has no data rows", file_path=traits_path)

    logger.info(f"Loaded traits for {len(labels)} taxa from {traits_path}")
    return TraitTable(
        labels=labels,
        states=states,
        sizes=sizes,
        predator_sizes=predators if predator_column else None,
        source=traits_path,
        columns=columns,
    )
