"""Task CRUD service: FastAPI handlers over a SQLAlchemy task store."""

__version__ = "1.0.0"
