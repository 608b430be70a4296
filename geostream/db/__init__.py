"""Database value adapters.

- geopackage: GeoPackage geometry blobs in SQLite (column values and
  feature tables as datasources)
"""

from geostream.db.geopackage import (
    GeoPackageDatasource,
    decode_geometry_column,
    encode_geometry_column,
    register_sqlite_types,
)

__all__ = [
    "GeoPackageDatasource",
    "decode_geometry_column",
    "encode_geometry_column",
    "register_sqlite_types",
]
