"""
FastAPI application components.
"""
