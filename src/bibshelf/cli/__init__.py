"""Command-line interface for bibshelf."""
