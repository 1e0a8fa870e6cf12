"""
Gateway Schemas.

Pydantic models for request/response validation.
"""

from gateway.schemas.auth import *
