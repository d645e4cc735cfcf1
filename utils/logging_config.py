"""
Logging configuration for applications embedding the posture engine.
The engine modules only create loggers; handlers are set up here.
"""

import logging
import os
import warnings

ENGINE_LOGGERS = ['core', 'main']

# Chatty loggers of the external landmark detector stack
LOGGERS_TO_QUIET = [
    'mediapipe',
    'mediapipe.python',
    'tensorflow',
    'absl',
    'matplotlib',
    'PIL',
    'h5py',
    'numba',
]

# Module-name patterns whose UserWarnings are dropped
DETECTOR_WARNING_MODULES = [r'mediapipe(\.|$)', r'absl(\.|$)']

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(debug: bool = False, quiet_detector: bool = True) -> None:
    """Send engine logs to stderr; DEBUG level when debug is set."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT)

    for name in ENGINE_LOGGERS:
        logging.getLogger(name).setLevel(level)

    if quiet_detector:
        configure_silent_detector_logging()


def configure_silent_detector_logging() -> None:
    # Suppress library warnings from the detector stack only
    for module in DETECTOR_WARNING_MODULES:
        warnings.filterwarnings('ignore', category=UserWarning, module=module)

    for logger_name in LOGGERS_TO_QUIET:
        logger = logging.getLogger(logger_name)
        logger.setLevel(logging.CRITICAL)
        logger.propagate = False

    # Environment variables for C++ logs
    os.environ.setdefault("GLOG_minloglevel", "3")
    os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "3")
