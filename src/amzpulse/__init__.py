"""AmzPulse: product research for marketplace resellers."""

__version__ = "1.0.0"
