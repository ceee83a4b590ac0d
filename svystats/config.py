"""
Global Configuration for Survey Statistics Helpers
==================================================

Central location for default parameters used across all modules.
Override these per call via the matching function arguments.
"""

# =============================================================================
# PCA CONFIGURATION
# =============================================================================
COMPONENT_PREFIX = 'PC'             # Components are named PC1, PC2, ...
KAISER_THRESHOLD = 1.0              # Retain components with eigenvalue >= 1

SUMMARY_ROWS = ['std.dev', 'eigen', 'prop.var', 'cum.var']

# =============================================================================
# ROTATION CONFIGURATION
# =============================================================================
DEFAULT_ROTATION = 'varimax'
ROTATIONS = ('varimax', 'quartimax', 'promax', 'oblimin', 'simplimax', 'cluster', 'none')

# Varimax settings (Kaiser normalization, same tolerance as R's stats::varimax)
VARIMAX_NORMALIZE = True
VARIMAX_TOL = 1e-5
VARIMAX_MAX_ITER = 1000

VARIANCE_COLUMNS = ['prop.var', 'cum.var', 'prop.exp', 'cum.exp']

# Loadings with an absolute value below this are blanked when printed
LOADING_CUTOFF = 0.1
LOADING_DIGITS = 2

# =============================================================================
# WEIGHT RESCALING CONFIGURATION
# =============================================================================
WEIGHT_A_COLUMN = 'svywght_a'       # Rescaled to sum to the cluster size
WEIGHT_B_COLUMN = 'svywght_b'       # Rescaled to sum to one within the cluster

# =============================================================================
# GOODNESS-OF-FIT CONFIGURATION
# =============================================================================
MAD_SCALE = 'normal'                # Consistent with R's mad() constant 1.4826
FIT_DIGITS = 4
