"""Shared helpers for journeyflow."""
