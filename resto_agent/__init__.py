"""Call orchestration core for an AI restaurant phone agent."""

__version__ = "0.1.0"
