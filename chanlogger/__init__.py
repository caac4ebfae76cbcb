"""IRC channel logger: joins channels on a network and forwards their chat to a job queue."""

__version__ = "1.0.0"
