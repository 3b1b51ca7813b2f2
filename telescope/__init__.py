"""Cross-browser synthetic testing agent."""

from telescope.runner import TestResult, launch_test

__version__ = "0.1.0"

__all__ = ["TestResult", "launch_test", "__version__"]
