"""echoflow: dependency-aware workflow scheduler for a multi-agent coding assistant."""

__version__ = "1.0.0"
