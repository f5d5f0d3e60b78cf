#!/usr/bin/env python3
"""
Output management for cladeshift.

This module writes the machine-readable JSON result and the human-readable
summary with its results tables.
"""

import datetime
import json
import logging
from pathlib import Path
from typing import IO, Dict, List

from ..core.analysis_coordinator import AnalysisReport
from ..core.constants import SIGNIFICANCE_THRESHOLD, VERSION
from ..core.tree_model import TreeModel
from ..core.utils import format_number, format_pvalue
from .tree_annotator import TreeAnnotator

logger = logging.getLogger(__name__)


class OutputManager:
    """
    Writes analysis results to disk.

    The JSON file carries every number of the report; the text summary shows
    the test, the rarefaction curve and the clades that were found.
    """

    def __init__(self, output_style: str = "unicode"):
        """
        Initialize the output manager.

        Args:
            output_style: Output style (unicode or ascii)
        """
        self.output_style = output_style

    def get_box_chars(self) -> Dict[str, str]:
        """Return box drawing characters for the configured style."""
        if self.output_style == "unicode":
            return {
                'horizontal': '─', 'vertical': '│', 'top_left': '┌', 'top_right': '┐',
                'bottom_left': '└', 'bottom_right': '┘', 'cross': '┼', 'top_tee': '┬',
                'bottom_tee': '┴', 'left_tee': '├', 'right_tee': '┤'
            }
        return {
            'horizontal': '-', 'vertical': '|', 'top_left': '+', 'top_right': '+',
            'bottom_left': '+', 'bottom_right': '+', 'cross': '+', 'top_tee': '+',
            'bottom_tee': '+', 'left_tee': '+', 'right_tee': '+'
        }

    def write_json(self, report: AnalysisReport, tree: TreeModel, output_path: Path) -> Path:
        """Write the full report as JSON."""
        payload = {
            'version': VERSION,
            'timestamp': datetime.datetime.now().isoformat(),
            'n_tips': tree.n_tips,
        }
        payload.update(report.to_dict(tree))
        with open(output_path, 'w') as f:
            json.dump(payload, f, indent=2)
        logger.debug(f"Wrote JSON results: {output_path}")
        return output_path

    def write_summary(self, report: AnalysisReport, tree: TreeModel, output_path: Path) -> Path:
        """Write the text summary."""
        with open(output_path, 'w') as f:
            self.write_analysis_summary(f, report, tree)
            self.write_test_table(f, report)
            if report.test.rarefaction is not None:
                self.write_rarefaction_table(f, report)
            self.write_clade_details(f, report, tree)
        logger.debug(f"Wrote text summary: {output_path}")
        return output_path

    def write_analysis_summary(self, f: IO, report: AnalysisReport, tree: TreeModel) -> None:
        title = "cladeshift Clade Change Analysis Results"
        separator = "=" * len(title)

        f.write(separator + "\n")
        f.write(f"{title:^{len(separator)}}\n")
        f.write(separator + "\n\n")

        f.write("Analysis Summary\n")
        f.write("─" * 16 + "\n")
        f.write(f"• Tips: {tree.n_tips}\n")
        method = report.method
        if report.fallback_used:
            method += f" (fallback from {report.requested_method})"
        f.write(f"• Reconstruction: {method}\n")
        if report.rate is not None:
            f.write(f"• Transition rate: {report.rate:.6g}\n")
        f.write(f"• Clades: {len(report.bundle.clades)}\n")
        f.write(f"• Change points: {len(report.bundle.node_changes)}\n")
        f.write(f"• Values pooled ({report.parameters.get('pooling', 'flat')}): "
                f"{len(report.distribution)} ({len(report.subset_indices)} at a change)\n")
        if report.ttest is not None:
            f.write(f"• Welch t-test: t = {report.ttest['statistic']:.4f}, "
                    f"p = {format_pvalue(report.ttest['pvalue'])}\n")
        for warning in report.warnings:
            f.write(f"• Warning: {warning}\n")
        f.write("\n")

    def _table(self, f: IO, headers: List[str], rows: List[List[str]]) -> None:
        box = self.get_box_chars()
        widths = [max(len(h), *(len(r[i]) for r in rows)) if rows else len(h)
                  for i, h in enumerate(headers)]

        def line(cells: List[str]) -> str:
            parts = [f"{cell:>{width}}" for cell, width in zip(cells, widths)]
            return box['vertical'] + ' ' + f" {box['vertical']} ".join(parts) + ' ' + box['vertical']

        inner = [box['horizontal'] * (w + 2) for w in widths]
        top = box['top_left'] + box['top_tee'].join(inner) + box['top_right']
        middle = box['left_tee'] + box['cross'].join(inner) + box['right_tee']
        bottom = box['bottom_left'] + box['bottom_tee'].join(inner) + box['bottom_right']

        f.write(top + "\n")
        f.write(line(headers) + "\n")
        f.write(middle + "\n")
        for row in rows:
            f.write(line(row) + "\n")
        f.write(bottom + "\n\n")

    def write_test_table(self, f: IO, report: AnalysisReport) -> None:
        test = report.test
        f.write("Resampling Test\n")
        f.write("─" * 15 + "\n")
        f.write(f"Statistic: {report.parameters.get('statistic', 'median')}, "
                f"alternative: {test.alternative}, replicates: {test.replicates}\n\n")

        headers = ['n', 'Observed', f'Envelope {test.envelope:.0%}', 'p-value', 'Result']
        low, high = test.expvar
        rows = [[
            str(test.subset_size),
            format_number(test.observed),
            f"[{format_number(low)}, {format_number(high)}]",
            format_pvalue(test.pvalue),
            self._format_significance(test.pvalue),
        ]]
        self._table(f, headers, rows)

    def write_rarefaction_table(self, f: IO, report: AnalysisReport) -> None:
        curve = report.test.rarefaction
        f.write("Rarefaction Curve\n")
        f.write("─" * 17 + "\n")
        headers = ['k', 'Median obs.', 'Median p', f'Fraction p<{SIGNIFICANCE_THRESHOLD}', 'Envelope']
        rows = []
        for point in curve.points:
            low, high = point.expvar
            summary = point.to_dict()
            rows.append([
                str(point.size),
                format_number(summary['median_observed']),
                format_pvalue(point.median_pvalue),
                f"{point.fraction_significant:.2f}",
                f"[{format_number(low)}, {format_number(high)}]",
            ])
        self._table(f, headers, rows)

    def write_clade_details(self, f: IO, report: AnalysisReport, tree: TreeModel) -> None:
        f.write("Clade Details\n")
        f.write("─" * 13 + "\n")
        for clade in report.bundle.clades:
            where = "root" if clade.node == tree.root else describe_node(tree, clade.node)
            f.write(f"→ Clade at {where} (origination state {clade.origination})\n")
            f.write(f"    normal ({len(clade.normal_tips)}): "
                    f"{_wrap_labels([tree.label(t) for t in clade.normal_tips])}\n")
            f.write(f"    change ({len(clade.change_tips)}): "
                    f"{_wrap_labels([tree.label(t) for t in clade.change_tips])}\n")
        f.write("\n")

    def _format_significance(self, p_value: float) -> str:
        if p_value < 0.001:
            return "***"
        elif p_value < 0.01:
            return "**"
        elif p_value < 0.05:
            return "*"
        return "ns"


def describe_node(tree: TreeModel, node_id: int) -> str:
    """Readable name of a node: its label for tips, its tip span otherwise."""
    if tree.is_tip(node_id):
        return tree.label(node_id)
    tips = tree.tip_descendants(node_id)
    return f"node {node_id} ({len(tips)} tips: {tree.label(tips[0])}..{tree.label(tips[-1])})"


def _wrap_labels(labels: List[str], width: int = 72, indent: str = "        ") -> str:
    if not labels:
        return "-"
    lines = []
    line = ""
    for label in labels:
        if not line:
            line = label
        elif len(line) + len(label) + 2 <= width:
            line += f", {label}"
        else:
            lines.append(line + ",")
            line = indent + label
    lines.append(line)
    return "\n".join(lines)


def write_outputs(report: AnalysisReport, tree: TreeModel, prefix: str,
                  output_style: str = "unicode") -> List[Path]:
    """
    Write PREFIX.json, PREFIX.txt and PREFIX_changes.nwk.

    Returns:
        Paths of the written files
    """
    prefix_path = Path(prefix)
    if prefix_path.parent and not prefix_path.parent.exists():
        prefix_path.parent.mkdir(parents=True, exist_ok=True)

    manager = OutputManager(output_style=output_style)
    written = [
        manager.write_json(report, tree, prefix_path.with_name(prefix_path.name + ".json")),
        manager.write_summary(report, tree, prefix_path.with_name(prefix_path.name + ".txt")),
    ]
    annotator = TreeAnnotator()
    written.append(annotator.write_annotated_tree(
        tree, report.node_states, report.bundle.node_changes,
        prefix_path.with_name(prefix_path.name + "_changes.nwk"),
    ))
    logger.info(f"Wrote {len(written)} output files with prefix {prefix}")
    return written
