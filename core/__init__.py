"""Core module - shared models, configuration, observability and storage.

This module contains the canonical record models, pipeline settings,
structured logging, metrics and the snapshot persistence adapter. It is
intentionally independent of any single object type.

Object-type specific logic (field aliases, coercion, rules) belongs in /normalizer/.
"""

__version__ = "1.0.0"
