"""Interactive prompt helpers."""
