"""Google+ to Discourse Migration Tool

Imports a Friends+Me Google+ Exporter export into Discourse and keeps the
imported topics and posts in step with later rendering changes.
"""

__version__ = "1.0.0"
__description__ = "Google+ (Friends+Me exporter) to Discourse importer and updater"

# Import and expose key classes for public API
from .models import (
    ContentNode,
    Feed,
    RunMode,
    RunStats,
)
from .config_loader import ConfigLoader, ImportSettings, get_nested
from .logger import setup_logging, ProgressTracker, log_section, log_config

# Expose main entry point for CLI
from .migrate import main as cli_main

__all__ = [
    # Version info
    '__version__',
    '__description__',

    # Core data models
    'ContentNode',
    'Feed',
    'RunMode',
    'RunStats',

    # Configuration
    'ConfigLoader',
    'ImportSettings',
    'get_nested',

    # Logging
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config',

    # CLI entry point
    'cli_main',
]
