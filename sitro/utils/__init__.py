"""Shared helpers used across the sitro package."""
