"""Session persistence backends (memory and JSON files)."""
