"""
HTTP API for the story discovery engine.
"""

from .main import create_app

__all__ = ['create_app']
