"""Core policy engine."""
