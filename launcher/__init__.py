"""Executor Launcher - per-task bootstrap for cluster executors.

Prepares a sandbox directory, resolves the executor binary, exports the
cluster environment, drops privileges and exec's the executor.
"""

__version__ = "0.1.0"
