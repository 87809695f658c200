"""
Core business logic for media uploads.

This module is framework-agnostic - it doesn't import FastAPI or any
storage SDK. Storage backends are injected, so upload and listing rules
can be tested without network access.
"""
