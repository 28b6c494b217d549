from .app import PRINCIPAL_HEADER, build_default_app, create_app

__all__ = ["PRINCIPAL_HEADER", "build_default_app", "create_app"]
