"""
REST API module for cloneplan.

Provides FastAPI endpoints for:
- Business analysis creation and management
- Six-stage cloning plan generation
- System statistics
"""
