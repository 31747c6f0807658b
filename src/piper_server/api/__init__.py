"""
HTTP layer:
    - routes.py: /api/speak, /api/voices, /api/health, /metrics
    - schemas.py: Pydantic request/response models
    - dependencies.py: Settings and service providers
"""
