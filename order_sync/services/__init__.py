"""
Clients for the external systems: Strapi (source) and Google Sheets (sink).
"""
from .sheets_client import SheetSink, SinkResult
from .strapi_api import StrapiAPI

__all__ = ["SheetSink", "SinkResult", "StrapiAPI"]
