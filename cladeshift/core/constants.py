#!/usr/bin/env python3
"""
Constants and defaults for cladeshift.
"""

VERSION = "0.3.0"

# --- Reconstruction ---
METHOD_TOPOLOGY = "topology"
METHOD_BRANCH_LENGTH = "branch-length"
DEFAULT_METHOD = METHOD_TOPOLOGY
STATE_ABSENT = 0
STATE_PRESENT = 1
MARGINAL_THRESHOLD = 0.5            # P(state 1) at or above this calls state 1

# Bounds for the ML transition rate, in units of 1 / mean branch length
RATE_LOWER_BOUND = 1e-4
RATE_UPPER_BOUND = 10.0

# --- Resampling ---
DEFAULT_REPLICATES = 1000
DEFAULT_STATISTIC = "median"
DEFAULT_ALTERNATIVE = "two-sided"
DEFAULT_ENVELOPE = 0.95
DEFAULT_RAREFACTION_REPEATS = 20
DEFAULT_SEED = 12345
DEFAULT_BLOCK_SIZE = 250
DEFAULT_THREADS = "auto"
MAX_AUTO_WORKERS = 8

# Spawn-key tags that separate independent random streams
STREAM_NULL = 0
STREAM_SUBSET = 1

# Null effects closer than this fraction of the data scale to the observed
# effect count as ties
TIE_TOLERANCE = 1e-9

# --- Input/Output ---
DEFAULT_LABEL_COLUMN = "label"
DEFAULT_SIZE_COLUMN = "body_size"
DEFAULT_STATE_COLUMN = "defense"
DEFAULT_OUTPUT_PREFIX = "cladeshift_results"
DEFAULT_POOLING = "flat"

# --- Display ---
SIGNIFICANCE_THRESHOLD = 0.05
DECIMAL_PLACES = 4
