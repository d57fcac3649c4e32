"""Core access-control engine and its configuration."""
