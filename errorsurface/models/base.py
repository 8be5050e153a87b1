"""Declarative base for the event store tables."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
