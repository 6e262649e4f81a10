from marketplace.services.category_fields import CATEGORY_FIELDS, fields_for, validate_specifications


def test_unknown_category_has_no_rules():
    assert fields_for("collectibles") == ()
    assert fields_for(None) == ()
    assert validate_specifications("collectibles", {"anything": "goes"}) == []


def test_required_fields():
    errors = validate_specifications("vehicles", {"brand": "Toyota", "model": "  "})
    assert {e["field"] for e in errors} == {"specifications.model", "specifications.year"}


def test_number_fields():
    base = {"brand": "Toyota", "model": "Corolla"}
    assert validate_specifications("vehicles", {**base, "year": "2015"}) == []
    assert validate_specifications("vehicles", {**base, "year": 2015}) == []
    errors = validate_specifications("vehicles", {**base, "year": "recent"})
    assert errors[0]["field"] == "specifications.year"
    # booleans are not numbers
    assert validate_specifications("vehicles", {**base, "year": True})


def test_select_fields():
    assert validate_specifications("properties", {"propertyType": "House"}) == []
    errors = validate_specifications("properties", {"propertyType": "Castle"})
    assert errors[0]["field"] == "specifications.propertyType"


def test_extra_keys_are_allowed():
    assert validate_specifications("electronics", {"brand": "Apple", "colour": "grey"}) == []


def test_every_select_has_options():
    for specs in CATEGORY_FIELDS.values():
        for spec in specs:
            if spec.type == "select":
                assert spec.options
