# backend/app/routes/__init__.py
"""HTTP route modules."""
