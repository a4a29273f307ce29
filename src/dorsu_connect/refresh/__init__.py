"""
Refresh Module - Knowledge base rebuilds.
=========================================

- service: Dataset reload, re-embedding, store replacement and auto refresh
"""

from dorsu_connect.refresh.service import DataRefreshService, get_data_refresh_service

__all__ = ["DataRefreshService", "get_data_refresh_service"]
