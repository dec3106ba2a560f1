from .main import build_services, create_app

__all__ = ["build_services", "create_app"]
