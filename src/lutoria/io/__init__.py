"""Persistence helpers for grade sidecars."""
