"""
config.py
~~~~~~~~~

Default training parameters and logging setup.

Every default can be overridden per instance, either through the
constructor or by assigning the attribute before calling ``train``.
"""

import os
import logging

# ============================================================================
# MULTI-LAYER PERCEPTRON
# ============================================================================

DEFAULT_LEARN_RATE = 0.01
DEFAULT_ERROR_MARGIN = 0.5
DEFAULT_PERCENT_CORRECT = 0.95
DEFAULT_MAX_ATTEMPTS = 100000
DEFAULT_RESCORE_INTERVAL = 1

# ============================================================================
# KOHONEN MAP
# ============================================================================

DEFAULT_INITIAL_ALPHA = 1.0
DEFAULT_TOTAL_ITERATIONS = 1000

# ============================================================================
# PERSISTENCE
# ============================================================================

DEFAULT_MODEL_DIR = os.getenv('HYDRANET_MODEL_DIR', 'models')

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = None) -> None:
    """
    Set up logging for applications embedding hydranet.

    The library itself never calls this; it only logs through module
    loggers.

    Args:
        level: Log level name; defaults to the LOG_LEVEL environment
            variable, then INFO
    """
    log_level_str = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    # matplotlib is chatty at DEBUG
    logging.getLogger('matplotlib').setLevel(logging.WARNING)
    logging.getLogger('hydranet').setLevel(log_level)
