"""
Incremental sync of successful Strapi orders into a Google Sheets document.
"""
from .pipeline import SyncResult, run_sync  # noqa: F401
from .transform import OrderBatch, build_batch, extract_label  # noqa: F401
from .watermark import WatermarkStore  # noqa: F401

__all__ = ["OrderBatch", "SyncResult", "WatermarkStore", "build_batch", "extract_label", "run_sync"]
