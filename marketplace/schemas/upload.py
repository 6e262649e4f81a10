from pydantic import BaseModel, Field


class UploadOut(BaseModel):
    success: bool = True
    count: int
    urls: list[str]


class UploadDelete(BaseModel):
    url: str = Field(min_length=1)
