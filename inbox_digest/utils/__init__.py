"""Utility modules: logging, tracing, body sanitizing, validators."""
