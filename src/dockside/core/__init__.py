"""Command execution core: process runner, stream draining and retry policy."""
