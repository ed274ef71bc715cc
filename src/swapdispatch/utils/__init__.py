"""Shared utilities: logging, timing and result export."""
