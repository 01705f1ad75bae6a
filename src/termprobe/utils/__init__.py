"""Shared utilities for termprobe."""
