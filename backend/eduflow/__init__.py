"""Application package for the EduFlow study planner backend.

This package exposes the service, repository, registry and model modules
used by the FastAPI application. It is intentionally lightweight;
individual modules contain the concrete implementations and
documentation.
"""
