"""Sharpline - sharp-money signal detection and bankroll guardrails."""

__version__ = "0.1.0"
