"""
Data Ingestion Module
"""
from .loader import LoadResult, fetch_frame, load_frame, load_raw_dataset

__all__ = [
    "LoadResult",
    "fetch_frame",
    "load_frame",
    "load_raw_dataset",
]
