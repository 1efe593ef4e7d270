"""Command-line tools for cachebin."""
