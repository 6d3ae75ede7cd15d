# errorlytic/schemas/common.py
from pydantic import BaseModel

class Pagination(BaseModel):
    """Page metadata returned by list endpoints"""
    page: int
    limit: int
    total: int
    pages: int

class MessageResponse(BaseModel):
    message: str
