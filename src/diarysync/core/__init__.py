"""Ambient infrastructure: configuration, errors, events, collaborators."""
