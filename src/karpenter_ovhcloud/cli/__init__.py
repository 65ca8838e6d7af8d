# src/karpenter_ovhcloud/cli/__init__.py
"""
CLI package. Exposes the top-level Typer `app` for the console entrypoint.
"""

from .main import app

__all__ = ["app"]
