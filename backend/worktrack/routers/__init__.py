from worktrack.routers import activities, admin, auth, forms

__all__ = ["activities", "admin", "auth", "forms"]
