"""HTTP layer: FastAPI routers, dependencies and response helpers."""
