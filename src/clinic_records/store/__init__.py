"""Record store implementations."""

from clinic_records.config.schema import StoreConfig
from clinic_records.store.base import RecordStore
from clinic_records.store.http_store import HttpRecordStore
from clinic_records.store.json_store import JsonFileStore
from clinic_records.transport.http_client import ConnectionPool, ConnectionPoolConfig


def create_store(config: StoreConfig, max_connections: int = 1) -> RecordStore:
    """Create the record store selected by configuration.

    Args:
        config: Store configuration
        max_connections: HTTP connection pool size, normally the importer's
            worker count

    Returns:
        JsonFileStore or HttpRecordStore
    """
    if config.backend == "http":
        pool = ConnectionPool(
            ConnectionPoolConfig(
                max_connections=max(max_connections, 1),
                retry_count=config.max_retries,
                backoff_factor=config.backoff_factor,
                timeout=config.timeout,
            )
        )
        return HttpRecordStore(config.base_url, pool=pool)
    return JsonFileStore(config.json_path)


__all__ = ["HttpRecordStore", "JsonFileStore", "RecordStore", "create_store"]
