"""Top-level package for Django configuration.

Settings modules for each environment and the WSGI entry point of the
tourism booking core.
"""
