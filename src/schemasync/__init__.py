"""db-schema-sync: apply versioned PostgreSQL schemas from S3 with psqldef."""

__version__ = "0.1.0"
