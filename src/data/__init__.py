"""
Data Generation Module
"""
from .generators import (
    DatasetSource,
    RawDataset,
    SalesDatasetGenerator,
    reference_dataset,
    resolve_dataset,
)

__all__ = [
    "DatasetSource",
    "RawDataset",
    "SalesDatasetGenerator",
    "reference_dataset",
    "resolve_dataset",
]
