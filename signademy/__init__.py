"""
Signademy Vision root package.

This package contains the FastAPI app entry point (main.py), API routes,
the gesture session facade, infrastructure (model asset cache, recognizer
runtime resolution, notifications), and the camera/recognition pipeline.
"""
