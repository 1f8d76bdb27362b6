"""Endpoint generator: turns a resource description into a wired CRUD module."""
