"""Shared utilities: logging, retries, HTTP pooling and subprocess helpers."""
