"""Client module - HTTP API, authentication, upload engine and folder watchers."""
