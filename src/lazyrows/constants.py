"""
Shared constants for lazyrows.

Single source of truth for window sizing and export defaults.
"""

# Rows in the first window of a partition. Each following window doubles
# until MAX_BLOCK_SIZE is reached.
DEFAULT_BLOCK_SIZE = 64

# Cap on rows fetched by a single window
MAX_BLOCK_SIZE = 1024

# Limit used for the zero-row fetch that resolves column names
EMPTY_LIMIT = "0,0"

DEFAULT_ENGINE = "pandas"
