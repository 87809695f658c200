"""
Memories API - upload photos and videos to cloud storage and list them.

This package contains the complete application:
- core: Framework-agnostic upload/listing logic and multipart decoding
- infrastructure: Storage backend integrations (S3, Cloudinary)
- api: FastAPI routes, middleware and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
