"""Structural limits of condition trees and rule sets.

These are fixed by the stored rule format rather than configured: the
models reject bar offsets beyond ``MAX_BAR_OFFSET`` at construction, and
the validator and editor default to the same values.
"""

# Maximum nesting depth of condition groups
MAX_DEPTH = 3

# Maximum number of rules per rule type (BUY / SELL) in one strategy
MAX_RULES_PER_TYPE = 5

# Leaves may look up to this many completed bars back (0 = latest bar)
MAX_BAR_OFFSET = 4

# Deepest offset plus the bar before it, which crossovers compare against
MIN_SNAPSHOT_WINDOW = MAX_BAR_OFFSET + 2
