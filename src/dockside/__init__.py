"""Typed client for the docker command-line tool."""
