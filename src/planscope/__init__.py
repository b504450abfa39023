"""planscope: interactive dashboard for deployment plan dependency graphs."""

__version__ = "0.1.0"
