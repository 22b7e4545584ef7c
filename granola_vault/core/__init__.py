"""Shared infrastructure: logging and timestamp helpers."""
