"""Utility helpers shared across Lutoria."""
