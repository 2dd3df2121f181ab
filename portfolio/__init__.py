"""
Backend package for the portfolio site.

This package provides a FastAPI application that serves the public project
listing and a login-gated admin panel, with record store, object store and
identity provider abstractions over Supabase (and in-memory doubles for
development and tests).
"""
