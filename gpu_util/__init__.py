"""Print the current utilization of the first NVIDIA GPU."""

__version__ = "0.1.0"
