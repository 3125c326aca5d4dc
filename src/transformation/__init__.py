"""
Schema Transformation Module
"""
from .normalize import NormalizedFrames, normalize_raw
from .star import StarFrames, build_star
from .reporting import build_reporting
from .transformers import MigrationResult, SchemaMigrator

__all__ = [
    "NormalizedFrames",
    "normalize_raw",
    "StarFrames",
    "build_star",
    "build_reporting",
    "MigrationResult",
    "SchemaMigrator",
]
