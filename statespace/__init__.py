"""
statespace: filtering and simulation smoothing for linear Gaussian state space models.

The package provides a regime-switching Kalman filter and a Carter-Kohn
simulation smoother that draws states and structural shocks jointly by
augmenting the state vector with the shocks.
"""

# Configure logging first
from .logging_config import configure_logging, get_logger

from .errors import (ConfigurationError, DimensionMismatch, NumericalError,
                     StateSpaceError, ValidationError)

# Core routines
from .regimes import RegimeSchedule
from .system import StateSpaceSystem
from .linalg import pinv, sqrt_psd
from .initialization import init_stationary_states
from .augmentation import augment_states_with_shocks
from .filters import KalmanOutput, kalman_filter
from .smoothers import carter_kohn_smoother

# Model objects and YAML parsing
from .StateSpaceModel import StateSpaceModel
from .parse_yaml import read_yaml

__version__ = '0.1.0'
