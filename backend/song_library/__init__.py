"""
Song Library API
================
HTTP song library over a Backblaze B2 or S3-compatible bucket.
"""

__version__ = "1.0.0"
