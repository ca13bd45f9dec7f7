"""
Console output for the pg_fixpoint CLI.
"""

from .console import ConsoleUI

__all__ = [
    'ConsoleUI',
]
