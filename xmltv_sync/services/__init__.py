"""
Services package for the XMLTV sync service

This package contains the ingestion core and the service layer around it.
"""
from xmltv_sync.services.epg_query_service import get_epg_data, get_feed_channels
from xmltv_sync.services.ingest_service import fetch_and_process, ingest_document, ingest_file
from xmltv_sync.services.scheduler_service import ingest_scheduler

__all__ = [
    'get_epg_data',
    'get_feed_channels',
    'fetch_and_process',
    'ingest_document',
    'ingest_file',
    'ingest_scheduler',
]
