"""
ARES: task orchestration across interchangeable AI coding engines.

Plans a task, selects an engine/model pair, executes it with automatic
fallback across engines, and drives diagnose -> fix -> verify loops for
tests, lint and syntax checks.
"""

from ares.identity import __version__

__all__ = ["__version__"]
