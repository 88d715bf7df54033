"""Adapters to external systems: HTTP hosts, agent processes, files."""
