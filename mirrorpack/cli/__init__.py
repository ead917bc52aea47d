"""Command line interface for MirrorKit."""
