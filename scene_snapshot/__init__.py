"""
Scene Snapshot

Scoped snapshot and selective restore for scene-like object corpora.
"""

__version__ = "1.0.0"
__author__ = "Scene Snapshot Team"

__all__ = ['__version__', '__author__']
