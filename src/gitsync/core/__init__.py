"""Ambient plumbing: command execution, configuration, credentials, logging."""
