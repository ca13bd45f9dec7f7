"""
Entry point for running pg_fixpoint as a module.

Usage:
    python -m pg_fixpoint -d app_test list
"""

from .cli import run

if __name__ == "__main__":
    run()
