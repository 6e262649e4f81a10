from pydantic import BaseModel, Field


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    errors: list[FieldError] = Field(default_factory=list)


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class Pagination(BaseModel):
    total: int
    pages: int
    page: int
    limit: int
