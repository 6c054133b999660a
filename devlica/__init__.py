"""Devlica: distill a developer's GitHub activity into agent skills."""

__version__ = "0.1.0"
