"""Offline tools (recording)."""
