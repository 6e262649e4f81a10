from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal

from marketplace.core.errors import field_error

FieldType = Literal["text", "number", "select"]


@dataclass(frozen=True)
class FieldSpec:
    name: str
    label: str
    type: FieldType = "text"
    required: bool = False
    options: tuple[str, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label,
            "type": self.type,
            "required": self.required,
            "options": list(self.options),
        }


# Keyed by top-level category slug. Subcategories inherit their parent's fields.
CATEGORY_FIELDS: dict[str, tuple[FieldSpec, ...]] = {
    "vehicles": (
        FieldSpec("brand", "Brand", required=True),
        FieldSpec("model", "Model", required=True),
        FieldSpec("year", "Year", "number", required=True),
        FieldSpec("mileage", "Mileage"),
        FieldSpec("fuelType", "Fuel Type", "select", options=("Petrol", "Diesel", "Hybrid", "Electric", "Other")),
        FieldSpec("transmission", "Transmission", "select", options=("Manual", "Automatic", "CVT", "Other")),
    ),
    "properties": (
        FieldSpec(
            "propertyType", "Property Type", "select", required=True,
            options=("House", "Apartment", "Land", "Commercial", "Other"),
        ),
        FieldSpec("bedrooms", "Bedrooms", "number"),
        FieldSpec("bathrooms", "Bathrooms", "number"),
        FieldSpec("size", "Size (sqft/perch)"),
        FieldSpec("furnished", "Furnished", "select", options=("Yes", "No", "Partially")),
    ),
    "electronics": (
        FieldSpec("brand", "Brand", required=True),
        FieldSpec("model", "Model"),
        FieldSpec("warranty", "Warranty"),
    ),
    "furniture": (
        FieldSpec("material", "Material"),
        FieldSpec("dimensions", "Dimensions"),
    ),
    "jobs": (
        FieldSpec(
            "jobType", "Job Type", "select", required=True,
            options=("Full Time", "Part Time", "Contract", "Freelance", "Internship"),
        ),
        FieldSpec("salary", "Salary Range"),
        FieldSpec("company", "Company"),
    ),
    "services": (
        FieldSpec("serviceType", "Service Type", required=True),
        FieldSpec("availability", "Availability"),
    ),
}


def fields_for(category_slug: str | None) -> tuple[FieldSpec, ...]:
    if not category_slug:
        return ()
    return CATEGORY_FIELDS.get(category_slug, ())


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    try:
        return math.isfinite(float(str(value)))
    except ValueError:
        return False


def validate_specifications(category_slug: str | None, specs: dict[str, Any]) -> list[dict[str, str]]:
    """
    Check a listing's specifications against the declared fields of its category.
    Unknown keys are allowed (free-form extras); declared keys must match their type.
    """
    errors: list[dict[str, str]] = []
    for declared in fields_for(category_slug):
        value = specs.get(declared.name)
        path = f"specifications.{declared.name}"
        if _is_blank(value):
            if declared.required:
                errors.append(field_error(path, f"{declared.label} is required"))
            continue
        if declared.type == "number" and not _is_number(value):
            errors.append(field_error(path, f"{declared.label} must be a number"))
        elif declared.type == "select" and str(value) not in declared.options:
            errors.append(field_error(path, f"{declared.label} must be one of: {', '.join(declared.options)}"))
    return errors
