from .base import db
from .resource_record import ResourceRecord

__all__ = ["db", "ResourceRecord"]
