"""Pydantic models for footprint worker API requests and responses."""

from models.base import *
from models.footprint import *
