"""MiniDrive: per-user virtual filesystem over a MinIO object store."""

__version__ = "0.1.0"
