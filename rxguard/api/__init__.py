"""FastAPI adapters for the RxGuard engine."""
