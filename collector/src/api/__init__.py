"""HTTP front door: thin FastAPI routers over the collector components."""
