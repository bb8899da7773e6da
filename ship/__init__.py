"""Branch-aware semantic release orchestration."""

__version__ = "0.3.0"
