"""Editorial board literature review queues."""

__version__ = "0.1.0"
