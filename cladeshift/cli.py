#!/usr/bin/env python3
"""
Main entry point for cladeshift.

Reconstructs a binary trait over a phylogeny, collects body sizes measured
at state changes and tests them against the rest of the tree.
"""

import argparse
import logging
import sys
import traceback
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from cladeshift.config_loader import create_example_yaml_config, load_configuration
from cladeshift.config_models import CladeShiftConfig
from cladeshift.core.analysis_coordinator import AnalysisCoordinator
from cladeshift.core.constants import VERSION
from cladeshift.core.progress_logger import ProgressLogger
from cladeshift.core.utils import format_pvalue, print_runtime_parameters, setup_logging
from cladeshift.exceptions import CladeShiftError, ConfigurationError
from cladeshift.io.data_loader import load_traits, load_tree
from cladeshift.io.output_manager import write_outputs

# Command-line destinations mapped onto configuration sections
_OVERRIDES = {
    'tree': ('input_output', 'tree_file'),
    'traits': ('input_output', 'traits_file'),
    'label_column': ('input_output', 'label_column'),
    'size_column': ('input_output', 'size_column'),
    'state_column': ('input_output', 'state_column'),
    'predator_column': ('input_output', 'predator_column'),
    'output': ('input_output', 'output_prefix'),
    'log_file': ('input_output', 'log_file'),
    'method': ('reconstruction', 'method'),
    'rate': ('reconstruction', 'rate'),
    'replicates': ('testing', 'replicates'),
    'statistic': ('testing', 'statistic'),
    'alternative': ('testing', 'alternative'),
    'rarefaction_repeats': ('testing', 'rarefaction_repeats'),
    'envelope': ('testing', 'envelope'),
    'pooling': ('testing', 'pooling'),
    'seed': ('computational', 'seed'),
    'threads': ('computational', 'threads'),
    'block_size': ('computational', 'block_size'),
}

# Flags that can only switch a setting on
_SWITCHES = {
    'debug': ('input_output', 'debug'),
    'fallback_to_topology': ('reconstruction', 'fallback_to_topology'),
    'rarefaction': ('testing', 'rarefaction'),
}


def _threads(value: str):
    if value == "auto":
        return value
    try:
        return int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"threads must be 'auto' or an integer, got {value!r}")


def setup_argument_parser() -> argparse.ArgumentParser:
    """Set up and configure the command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="cladeshift",
        description=f"cladeshift v{VERSION}: Test whether a continuous trait shifts where a binary trait changes state on a phylogeny.",
    )

    parser.add_argument("tree", nargs='?', help="Rooted Newick tree (can be specified in config file).")
    parser.add_argument("traits", nargs='?', help="CSV trait table (can be specified in config file).")
    parser.add_argument("--version", action="version", version=f"cladeshift {VERSION}")

    data_group = parser.add_argument_group('Trait table')
    data_group.add_argument("--label-column", help="Column holding tip labels (default: label).")
    data_group.add_argument("--size-column", help="Column holding body size (default: body_size).")
    data_group.add_argument("--state-column", help="Column holding the 0/1 trait (default: defense).")
    data_group.add_argument("--predator-column", help="Column holding predator size; body size is divided by it before the log transform.")
    data_group.add_argument("--no-log", action="store_true", help="Do not log-transform body size.")

    recon_group = parser.add_argument_group('Ancestral state reconstruction')
    recon_group.add_argument("--method", choices=["topology", "branch-length"],
                             help="Reconstruction method (default: topology).")
    recon_group.add_argument("--rate", type=float, help="Fixed transition rate for branch-length reconstruction (default: ML estimate).")
    recon_group.add_argument("--fallback-to-topology", action="store_true",
                             help="Use topology reconstruction when the tree lacks usable branch lengths.")

    test_group = parser.add_argument_group('Resampling test')
    test_group.add_argument("--replicates", type=int, help="Null draws per subset size (default: 1000).")
    test_group.add_argument("--statistic", choices=["median", "mean"], help="Statistic to compare (default: median).")
    test_group.add_argument("--alternative", choices=["two-sided", "less", "greater"],
                            help="Direction of the test (default: two-sided).")
    test_group.add_argument("--envelope", type=float, help="Level of the null envelope (default: 0.95).")
    test_group.add_argument("--rarefaction", action="store_true", help="Compute the p-value curve over subset sizes 1..n.")
    test_group.add_argument("--rarefaction-repeats", type=int, help="Random subsets per reduced size (default: 20).")
    test_group.add_argument("--pooling", choices=["flat", "clade"],
                            help="Pool every tip value (flat) or one median per clade bucket (clade).")
    test_group.add_argument("--no-ttest", action="store_true", help="Skip the Welch t-test sanity check.")

    comp_group = parser.add_argument_group('Computation')
    comp_group.add_argument("--seed", type=int, help="Seed for every random stream (default: 12345).")
    comp_group.add_argument("--threads", type=_threads, help="Worker threads: 'auto' or an integer.")
    comp_group.add_argument("--block-size", type=int, help="Replicates per worker block (default: 250).")

    out_group = parser.add_argument_group('Output and configuration')
    out_group.add_argument("--output", help="Output prefix; writes PREFIX.json, PREFIX.txt and PREFIX_changes.nwk.")
    out_group.add_argument("--config", help="Configuration file (YAML, TOML or INI).")
    out_group.add_argument("--generate-config", metavar="FILE", help="Write an example YAML configuration and exit.")
    out_group.add_argument("--debug", action="store_true", help="Enable detailed debug logging.")
    out_group.add_argument("--log-file", help="Write a detailed debug log to this file.")

    return parser


def build_configuration(args: argparse.Namespace) -> CladeShiftConfig:
    """
    Merge the optional config file with command-line values.

    Command-line values win over the file; unset options keep the file's
    value or the default.
    """
    base = load_configuration(args.config) if args.config else CladeShiftConfig()
    data: Dict[str, Dict[str, Any]] = base.model_dump()

    for dest, (section, key) in _OVERRIDES.items():
        value = getattr(args, dest, None)
        if value is not None:
            data[section][key] = value
    for dest, (section, key) in _SWITCHES.items():
        if getattr(args, dest, False):
            data[section][key] = True
    if args.no_log:
        data['testing']['log_transform'] = False
    if args.no_ttest:
        data['testing']['ttest'] = False

    try:
        return CladeShiftConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid options:\n  → {e}") from e


def run_analysis(config: CladeShiftConfig, progress: Optional[ProgressLogger] = None) -> List[Path]:
    """
    Run the analysis described by a configuration and write its outputs.

    Returns:
        Paths of the written files
    """
    io_config = config.input_output
    if io_config.tree_file is None or io_config.traits_file is None:
        raise ConfigurationError("Both a tree file and a trait file are required "
                                 "(as arguments or in the config file)")
    progress = progress or ProgressLogger(show_progress=False)

    progress.section_header("Loading data")
    tree = load_tree(io_config.tree_file)
    traits = load_traits(
        io_config.traits_file,
        label_column=io_config.label_column,
        size_column=io_config.size_column,
        state_column=io_config.state_column,
        predator_column=io_config.predator_column,
    )
    progress.complete("Tree loaded", tree.n_tips, "tips")
    progress.complete("Traits loaded", len(traits), "taxa")

    progress.section_header("Analysis")
    coordinator = AnalysisCoordinator.from_config(
        config, progress_callback=progress.block_callback("Resampling blocks")
    )
    report = coordinator.run(tree, traits.sizes, traits.states, traits.predator_sizes)
    progress.complete("Resampling test finished", report.test.replicates, "replicates")

    progress.info(f"Observed effect: {report.test.observed:.4f}  "
                  f"p = {format_pvalue(report.test.pvalue)}  "
                  f"({len(report.bundle.node_changes)} change points)")

    written = write_outputs(report, tree, io_config.output_prefix)
    progress.file_summary(written)
    return written


def main(argv: Optional[List[str]] = None):
    """Main entry point for cladeshift."""
    parser = setup_argument_parser()
    args = parser.parse_args(argv)

    setup_logging(debug_mode=args.debug, log_file=args.log_file)
    logger = logging.getLogger("cladeshift.cli")

    if args.generate_config:
        try:
            create_example_yaml_config(Path(args.generate_config))
        except OSError as e:
            logger.error(f"Configuration generation failed: {e}")
            sys.exit(1)
        return

    try:
        config = build_configuration(args)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.message}")
        sys.exit(1)

    if args.config:
        setup_logging(debug_mode=config.input_output.debug, log_file=config.input_output.log_file)

    if config.input_output.tree_file is None or config.input_output.traits_file is None:
        logger.error("Error: a tree file and a trait file are required "
                     "(either as positional arguments or in a config file)")
        parser.print_help()
        sys.exit(1)

    print_runtime_parameters(config.to_flat_dict())

    try:
        run_analysis(config, ProgressLogger(verbose=config.input_output.debug))
    except CladeShiftError as e:
        logger.error(f"cladeshift analysis failed: {e.message}")
        if e.context:
            logger.debug(f"Error context: {e.context}")
        if config.input_output.debug:
            logger.debug("Full traceback:\n%s", traceback.format_exc())
        sys.exit(1)


if __name__ == "__main__":
    main()
