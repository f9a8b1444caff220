"""Unit tests: coordinator transitions, models and token helpers."""
