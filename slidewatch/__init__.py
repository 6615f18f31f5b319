"""Poll an AI slide-deck generator until its projects and tasks finish."""

__version__ = "0.1.0"
