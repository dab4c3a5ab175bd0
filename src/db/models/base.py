"""Declarative base shared by all table models."""
from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for solved-sync ORM models."""
