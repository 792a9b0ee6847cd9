"""
Central configuration constants for the cell simulation.

Defines default values, thresholds, and configuration parameters
used across multiple modules. Runtime overrides come from the YAML
config loaded by loader.py.
"""

# ============================================================================
# Simulation Area (toroidal)
# ============================================================================

# Area is centered on AREA_CENTER and extends AREA_HALF_EXTENT in each axis.
# Positions wrap at the edges instead of clamping.
AREA_CENTER = (0.0, 0.0)
AREA_HALF_EXTENT = (500.0, 500.0)


# ============================================================================
# Force Model
# ============================================================================

# Spring attraction along connections
HOOKE_DYNAMIC = 0.1
HOOKE_STATIC = 0.1
HOOKE_RESTING = HOOKE_STATIC + 0.5 * HOOKE_DYNAMIC

# Inverse-square repulsion between all cell pairs
NEWTON_DYNAMIC = 0.1
NEWTON_STATIC = 0.1
NEWTON_RESTING = NEWTON_STATIC + 0.5 * NEWTON_DYNAMIC

# Squared-distance floor for repulsion (avoids the r -> 0 singularity)
REPULSION_RADIUS_SQUARED = 1.0

# Optional neighbour cut-off for repulsion (None = all pairs)
REPULSION_CUTOFF = None

# Use scipy.cKDTree for cut-off pair search (only when REPULSION_CUTOFF is set)
USE_CKDTREE = True
CKDTREE_LEAFSIZE = 16

# Particle properties
INERTIA = 1.0           # Particle mass
DRAG = 0.05             # Fraction of velocity lost per physics step
PHYSICS_DT = 1.0        # Integration step

# Connections longer than this are always severed
SEPARATION_THRESHOLD = 50.0

# Distance a child is displaced from its parent after division
DIVISION_SHIFT = 1.0


# ============================================================================
# Cell Metabolism
# ============================================================================

CELL_INITIAL_ENERGY = 4096       # Energy of a freshly spawned cell
STATIC_ENERGY_COST = 16          # Flat cost per tick
SIZE_ENERGY_COST_FACTOR = 1.0 / 64.0       # Cost per genome gene per tick
EXECUTION_ENERGY_COST_FACTOR = 1.0 / 32.0  # Cost per executed instruction

# Logistic squashing slope for machine integer outputs
SQUASH_COEFFICIENT = 1.0 / 16.0


# ============================================================================
# Energy Reward
# ============================================================================

REWARD_SCHEME = 'closest_distance'   # 'closest_distance' or 'connections'
REWARD_DISTANCE_FACTOR = 0.25        # Energy per squared distance unit
REWARD_CONNECTION_FACTOR = 16.0      # Energy per surviving connection
REWARD_CAP = 64                      # Max energy granted per tick


# ============================================================================
# Spawning
# ============================================================================

CELL_SPAWN_PROBABILITY = 0.01


# ============================================================================
# Genome / Machine
# ============================================================================

DEFAULT_LAMBDA = 8192.0       # Mean exponential gap between mutations
LAMBDA_SELF_POINT = 512.0     # lambda mutates when an Exp(lambda) draw falls below this
LAMBDA_FLOOR = 2.0            # lambda never decreases below this
MAXIMUM_MUTATES = 1024        # Max mutations per chromosome per call

EXECUTION_STEP_CAP = 512      # Max instructions per chromosome invocation

# Chromosome names in execution order, with (max gene length, crossover count)
CHROMOSOME_LAYOUT = {
    'init': (128, 4),
    'cycle': (128, 4),
    'connection_elasticity': (128, 4),
    'connection_signal': (128, 4),
    'connection_sever': (128, 4),
    'repulsion': (128, 4),
    'die': (128, 4),
    'divide': (128, 4),
}

# Literal ranges for randomly generated push instructions
LITERAL_INT_RANGE = 256
LITERAL_FLOAT_RANGE = 16.0


# ============================================================================
# Performance Configuration
# ============================================================================

# Tick timing window for rolling average
TICK_TIME_WINDOW = 100  # Number of ticks to average

# Default tick summary interval (print every N ticks)
TICK_SUMMARY_INTERVAL = 100  # Print summary every 100 ticks
