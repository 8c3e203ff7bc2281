"""Shared helpers for configuration and pagination."""
