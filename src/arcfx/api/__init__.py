"""FastAPI management API for ARC-FX webhooks.

Example:
    ```python
    import uvicorn
    from arcfx.api import create_app

    uvicorn.run(create_app(), host="0.0.0.0", port=4000)
    ```

Or run directly:
    ```bash
    uvicorn arcfx.api:create_app --factory --port 4000
    ```
"""

from .app import create_app, register_exception_handlers
from .router import router

__all__ = [
    "create_app",
    "register_exception_handlers",
    "router",
]
