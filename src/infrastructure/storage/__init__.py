"""
Storage backends for uploaded media.

Supports an S3 bucket (AWS or any S3-compatible endpoint) and the
Cloudinary media service, each with an in-memory mock mode for local
development without credentials.
"""
