from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

CategoryName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


class CategoryCreate(BaseModel):
    name: CategoryName
    description: str | None = Field(default=None, max_length=500)
    icon: str | None = Field(default=None, max_length=50)
    color: str | None = Field(default=None, max_length=80)
    image: str | None = Field(default=None, max_length=500)
    parent: str | None = None


class CategoryUpdate(BaseModel):
    name: CategoryName | None = None
    description: str | None = Field(default=None, max_length=500)
    icon: str | None = Field(default=None, max_length=50)
    color: str | None = Field(default=None, max_length=80)
    image: str | None = Field(default=None, max_length=500)
    # explicit null moves the category to the top level
    parent: str | None = None


class CategorySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    icon: str | None = None


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    description: str | None = None
    icon: str
    color: str
    image: str
    parent_id: str | None = None
    subcategories: list[CategorySummary] = Field(default_factory=list)
    created_at: datetime


class CategoryListEnvelope(BaseModel):
    success: bool = True
    count: int
    categories: list[CategoryOut]


class CategoryEnvelope(BaseModel):
    success: bool = True
    category: CategoryOut
    parent: CategorySummary | None = None


class FieldSpecOut(BaseModel):
    name: str
    label: str
    type: Literal["text", "number", "select"]
    required: bool
    options: list[str] = Field(default_factory=list)


class CategoryFieldsEnvelope(BaseModel):
    success: bool = True
    category: str
    fields: list[FieldSpecOut]


class CategoryInitEnvelope(BaseModel):
    success: bool = True
    created: int
