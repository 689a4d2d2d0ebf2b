"""Gestiones - dynamic request forms and multi-level approval workflows"""

__version__ = "1.0.0"
