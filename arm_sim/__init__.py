"""Kinematic arm simulator package."""

from .engine import ArmEngine
from .messages import BoundingBox, Contact, ContactBatch, ImageFrame, Vector3

__all__ = ["ArmEngine", "BoundingBox", "Contact", "ContactBatch", "ImageFrame", "Vector3"]
