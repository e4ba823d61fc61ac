"""ganttline - job-shop dispatching and interactive timeline scheduling."""

__version__ = "0.1.0"
