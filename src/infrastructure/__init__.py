"""
Infrastructure layer - external service integrations.

- storage: S3 bucket and Cloudinary media service backends

These wrappers translate vendor responses into our domain models.
"""
