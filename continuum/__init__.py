"""
Continuum identity ingest core.
"""

# Setup logging configuration on package import
from .utils.logging_config import setup_logging

setup_logging()
