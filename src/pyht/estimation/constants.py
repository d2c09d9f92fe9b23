"""
Constants shared across the estimation modules.
"""

# Normal critical values, used where a large-sample approximation is wanted
Z_SCORE_90 = 1.6448536269514722
Z_SCORE_95 = 1.959963984540054
Z_SCORE_99 = 2.5758293035489004

DEFAULT_CONFIDENCE = 0.90
DEFAULT_MC_TRIALS = 10_000

# Secondary (plot) sampling defaults: one plot per 10 acres, 2 to 15 plots
DEFAULT_PLOT_SPACING = 10.0
DEFAULT_MIN_PLOTS = 2
DEFAULT_MAX_PLOTS = 15

# Upper limit on ordered draw sequences for exact enumeration
DEFAULT_MAX_EXACT_SEQUENCES = 2_000_000

# Rows per batch when simulating Monte Carlo inclusion probabilities
MC_BATCH_SIZE = 2_000

INCLUSION_METHODS = ("monte_carlo", "analytic", "exact")
JOINT_METHODS = ("approximate", "monte_carlo", "exact")
SE_NORMALIZATIONS = ("sample_size", "none")
