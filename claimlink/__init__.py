"""claimlink - document to claim matching and draft claim review."""

__version__ = "0.1.0"
