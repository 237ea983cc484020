"""
Experiment layer: run configuration and the command line entry point.
"""

from .run_config import RunConfig, default_population_size, load_run_config, load_run_spec

__all__ = ["RunConfig", "default_population_size", "load_run_config", "load_run_spec"]
