"""Declarative base shared by all models and Alembic."""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
