"""bitcache command-line interface."""
