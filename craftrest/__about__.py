__version__ = "0.4.0"
__description__ = "craftrest : convention driven CRUD routes for FastAPI and SqlAlchemy"
