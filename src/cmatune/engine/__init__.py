"""
Engine layer: continuous optimizer implementations.

The CMA-ES engine and its building blocks live under `cmatune.engine.cmaes`.
"""
