"""Versioned patches layered onto git branches."""
