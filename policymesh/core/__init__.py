"""Core configuration for policymesh."""

from .config import Config

__all__ = ['Config']
