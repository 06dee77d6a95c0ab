"""SQLAlchemy Base with every model registered on its metadata."""
from school_admin.models.base import Base


def import_models():
    """Import all models to register them with SQLAlchemy."""
    import school_admin.models  # noqa: F401


import_models()

__all__ = ["Base", "import_models"]
