"""Temple Community Hub backend."""
