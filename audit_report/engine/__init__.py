"""Layout engine: document tree builder, bookmarks and value formatting."""
