"""Utility helpers for policymesh."""
