"""
API sub-package for the URL Render Service.

`main.py` builds the FastAPI application; `routes/` holds the HTTP and
WebSocket endpoints.
"""
