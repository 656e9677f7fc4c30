"""Signing certificate resolution, extraction and inspection."""
