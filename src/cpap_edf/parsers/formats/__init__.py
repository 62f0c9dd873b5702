"""Low-level file format decoders."""
