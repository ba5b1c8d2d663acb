"""HTTP transport for remote record stores."""

from clinic_records.transport.http_client import ConnectionPool, ConnectionPoolConfig

__all__ = ["ConnectionPool", "ConnectionPoolConfig"]
