"""Unit tests for cms.services.fields (definitions, sanitizer, validator, pipeline)."""
import pydantic
import pytest

from cms.core.errors import ErrorCode, ValidationError
from cms.services.fields.definitions import (
    RepeaterField,
    SlugField,
    TextField,
    parse_fields,
)
from cms.services.fields.pipeline import process_content
from cms.services.fields.sanitizer import sanitize, sanitize_html, slugify
from cms.services.fields.validator import validate


# ─── Definitions ──────────────────────────────────────────────────────────────

def test_parse_fields_discriminates_on_type():
    fields = parse_fields({
        "title": {"type": "text", "maxLength": 10},
        "slug": {"type": "slug", "from": "title"},
    })
    assert isinstance(fields["title"], TextField)
    assert fields["title"].max_length == 10
    assert isinstance(fields["slug"], SlugField)
    assert fields["slug"].from_ == "title"


def test_parse_fields_nested_repeater():
    fields = parse_fields({
        "sections": {
            "type": "repeater",
            "max": 3,
            "fields": {"heading": {"type": "text", "required": True}},
        }
    })
    repeater = fields["sections"]
    assert isinstance(repeater, RepeaterField)
    assert isinstance(repeater.fields["heading"], TextField)


def test_parse_fields_rejects_unknown_type():
    with pytest.raises(pydantic.ValidationError):
        parse_fields({"x": {"type": "hologram"}})


# ─── Sanitizer ────────────────────────────────────────────────────────────────

def test_sanitize_html_strips_scripts_and_handlers():
    cleaned = sanitize_html('<p onclick="steal()">Hi<script>alert(1)</script></p>')
    assert "<script" not in cleaned
    assert "onclick" not in cleaned
    assert cleaned.startswith("<p>Hi")


def test_sanitize_html_drops_javascript_links():
    cleaned = sanitize_html('<a href="javascript:alert(1)">x</a>')
    assert "javascript" not in cleaned


def test_sanitize_html_keeps_allowed_markup():
    cleaned = sanitize_html('<h2 class="lead">Title</h2><a href="https://example.com">link</a>')
    assert '<h2 class="lead">Title</h2>' in cleaned
    assert 'href="https://example.com"' in cleaned


def test_sanitize_html_is_idempotent():
    once = sanitize_html('<div><b>bold</b><iframe src="x"></iframe></div>')
    assert sanitize_html(once) == once


def test_slugify():
    assert slugify("Hello World!") == "hello-world"
    assert slugify("Café Déjà Vu") == "cafe-deja-vu"
    assert slugify("Hello World", separator="_") == "hello_world"


def test_sanitize_derives_missing_slug_from_source():
    fields = parse_fields({"title": {"type": "text"}, "slug": {"type": "slug", "from": "title"}})
    assert sanitize({"title": "My First Post"}, fields)["slug"] == "my-first-post"


def test_sanitize_normalises_given_slug():
    fields = parse_fields({"title": {"type": "text"}, "slug": {"type": "slug", "from": "title"}})
    out = sanitize({"title": "Ignored", "slug": "Custom Slug"}, fields)
    assert out["slug"] == "custom-slug"


def test_sanitize_does_not_mutate_input():
    fields = parse_fields({"body": {"type": "richtext"}})
    data = {"body": "<script>x</script>"}
    sanitize(data, fields)
    assert data == {"body": "<script>x</script>"}


def test_sanitize_recurses_into_groups_and_repeaters():
    fields = parse_fields({
        "seo": {"type": "group", "fields": {"intro": {"type": "richtext"}}},
        "blocks": {"type": "repeater", "fields": {"html": {"type": "richtext"}}},
    })
    out = sanitize(
        {"seo": {"intro": "<script>x</script>ok"}, "blocks": [{"html": "<iframe></iframe>hi"}]},
        fields,
    )
    assert "<script" not in out["seo"]["intro"]
    assert "<iframe" not in out["blocks"][0]["html"]


# ─── Validator ────────────────────────────────────────────────────────────────

def test_validate_reports_missing_required_field():
    fields = parse_fields({"title": {"type": "text", "required": True}})
    result = validate({}, fields)
    assert result.valid is False
    assert result.errors == {"title": ["This field is required"]}


def test_validate_partial_skips_required():
    fields = parse_fields({"title": {"type": "text", "required": True}})
    assert validate({}, fields, partial=True).valid is True


def test_validate_allows_undeclared_keys():
    fields = parse_fields({"title": {"type": "text"}})
    result = validate({"title": "a", "extra": 42}, fields)
    assert result.valid is True
    assert result.data == {"title": "a", "extra": 42}


def test_validate_optional_fields_accept_null():
    fields = parse_fields({"rating": {"type": "number"}})
    assert validate({"rating": None}, fields).valid is True


@pytest.mark.parametrize(
    ("field_def", "value"),
    [
        ({"type": "text", "maxLength": 3}, "toolong"),
        ({"type": "number", "min": 0, "max": 5}, 9),
        ({"type": "number"}, "7"),
        ({"type": "email"}, "not-an-email"),
        ({"type": "url"}, "example"),
        ({"type": "boolean"}, "yes"),
        ({"type": "select", "options": [{"label": "A", "value": "a"}]}, "b"),
        ({"type": "gallery", "maxItems": 1}, ["a", "b"]),
    ],
)
def test_validate_rejects_bad_values(field_def, value):
    fields = parse_fields({"field": field_def})
    result = validate({"field": value}, fields)
    assert result.valid is False
    assert "field" in result.errors


def test_validate_select_without_options_accepts_anything():
    fields = parse_fields({"field": {"type": "select"}})
    assert validate({"field": "whatever"}, fields).valid is True


def test_validate_multi_select_checks_each_item():
    fields = parse_fields({
        "tags": {"type": "select", "multiple": True, "options": [{"label": "A", "value": "a"}]}
    })
    assert validate({"tags": ["a"]}, fields).valid is True
    assert validate({"tags": ["a", "z"]}, fields).valid is False


def test_validate_nested_error_paths():
    fields = parse_fields({
        "sections": {
            "type": "repeater",
            "fields": {"heading": {"type": "text", "required": True}},
        }
    })
    result = validate({"sections": [{"heading": "ok"}, {}]}, fields)
    assert result.valid is False
    assert result.errors == {"sections.1.heading": ["This field is required"]}


# ─── Pipeline ─────────────────────────────────────────────────────────────────

def test_process_content_returns_sanitized_data():
    fields = parse_fields({
        "title": {"type": "text", "required": True},
        "slug": {"type": "slug", "from": "title", "required": True},
    })
    assert process_content({"title": "Hello There"}, fields) == {
        "title": "Hello There",
        "slug": "hello-there",
    }


def test_partial_payloads_do_not_gain_derived_slugs():
    fields = parse_fields({
        "title": {"type": "text", "required": True},
        "slug": {"type": "slug", "from": "title", "required": True},
    })
    assert process_content({"title": "Hola"}, fields, partial=True) == {"title": "Hola"}
    assert process_content({"title": "Hola", "slug": "Mi Título"}, fields, partial=True) == {
        "title": "Hola",
        "slug": "mi-titulo",
    }


def test_process_content_raises_with_field_errors():
    fields = parse_fields({"title": {"type": "text", "required": True}})
    with pytest.raises(ValidationError) as exc_info:
        process_content({"title": 5}, fields)
    err = exc_info.value
    assert err.code == ErrorCode.CONTENT_INVALID
    assert err.http_status == 422
    assert "title" in err.detail["errors"]


def test_process_content_rejects_non_objects():
    fields = parse_fields({"title": {"type": "text"}})
    with pytest.raises(ValidationError):
        process_content(["not", "a", "dict"], fields)
