"""
Backend package for the site content portal.

This package provides a FastAPI application that lets a site owner log in and
edit the text fields rendered on their public page, with storage abstractions
so the same handlers run against in-memory, Redis or SQL backends.
"""
