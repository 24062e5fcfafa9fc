# backend/tests/test_notion_normalizer.py

from app.notion.normalizer import (
    DEFAULT_AUTHOR,
    DEFAULT_CATEGORY,
    DEFAULT_READ_TIME,
    FIELD_SOURCES,
    first_present,
    is_published,
    normalize_page,
)


def _title(text: str) -> dict:
    return {"type": "title", "title": [{"plain_text": text}]}


def _rich_text(text: str) -> dict:
    return {"type": "rich_text", "rich_text": [{"plain_text": text}]}


def _select(name: str) -> dict:
    return {"type": "select", "select": {"name": name}}


def _full_page() -> dict:
    return {
        "id": "page-full",
        "created_time": "2024-01-01T00:00:00.000Z",
        "cover": None,
        "properties": {
            "Title": _title("Full post"),
            "Description": _rich_text("All fields are set"),
            "Category": _select("Engineering"),
            "Tags": {
                "type": "multi_select",
                "multi_select": [{"name": "python"}, {"name": "notion"}],
            },
            "Published": {"type": "date", "date": {"start": "2024-03-15"}},
            "Author": {"type": "people", "people": [{"name": "Sam"}]},
            "Cover": {
                "type": "files",
                "files": [{"type": "file", "file": {"url": "https://cdn.example.com/cover.png"}}],
            },
            "ReadTime": {"type": "number", "number": 8},
            "Status": _select("Published"),
            "Slug": _rich_text("full-post"),
        },
    }


def test_full_record_reproduces_source_values():
    post = normalize_page(_full_page())

    assert post.id == "page-full"
    assert post.title == "Full post"
    assert post.description == "All fields are set"
    assert post.category == "Engineering"
    assert post.tags == ["python", "notion"]
    assert post.published_date == "2024-03-15"
    assert post.author == "Sam"
    assert post.cover_image == "https://cdn.example.com/cover.png"
    assert post.read_time == 8
    assert post.status == "Published"
    assert post.slug == "full-post"


def test_empty_record_is_fully_populated_with_defaults():
    page = {"id": "page-empty", "created_time": "2024-02-02T10:00:00.000Z", "properties": {}}

    post = normalize_page(page)

    assert post.title == "Untitled"
    assert post.description == ""
    assert post.category == DEFAULT_CATEGORY
    assert post.tags == []
    assert post.published_date == "2024-02-02T10:00:00.000Z"
    assert post.author == DEFAULT_AUTHOR
    assert post.cover_image is None
    assert post.read_time == DEFAULT_READ_TIME
    assert post.status == "Published"
    assert post.slug == "page-empty"


def test_listing_defaults_use_position_placeholder():
    page = {
        "id": "page-3",
        "created_time": "2024-02-02T10:00:00.000Z",
        "properties": {"Title": {"type": "title", "title": []}},
    }

    post = normalize_page(page, position=3)

    assert post.title == "Untitled Post 3"
    assert post.description == "No description available"


def test_title_falls_back_through_candidates():
    page = {
        "id": "p",
        "created_time": "2024-01-01T00:00:00.000Z",
        "properties": {
            "Title": {"type": "title", "title": []},
            "Name": _title("From Name"),
        },
    }

    assert normalize_page(page).title == "From Name"


def test_rich_text_segments_are_joined():
    page = {
        "id": "p",
        "created_time": "2024-01-01T00:00:00.000Z",
        "properties": {
            "Name": {
                "type": "title",
                "title": [{"plain_text": "Hello, "}, {"plain_text": "world"}],
            },
        },
    }

    assert normalize_page(page).title == "Hello, world"


def test_date_falls_back_to_created_property_then_page():
    with_created = {
        "id": "p",
        "created_time": "2024-01-01T00:00:00.000Z",
        "properties": {
            "Date": {"type": "date", "date": None},
            "Created": {"type": "created_time", "created_time": "2024-05-05T05:05:00.000Z"},
        },
    }
    assert normalize_page(with_created).published_date == "2024-05-05T05:05:00.000Z"

    with_date = {
        "id": "p",
        "created_time": "2024-01-01T00:00:00.000Z",
        "properties": {"Date": {"type": "date", "date": {"start": "2024-06-01"}}},
    }
    assert normalize_page(with_date).published_date == "2024-06-01"


def test_cover_image_order():
    external_image = {
        "id": "p",
        "created_time": "2024-01-01T00:00:00.000Z",
        "cover": {"type": "external", "external": {"url": "https://example.com/page-cover.png"}},
        "properties": {
            "Cover": {"type": "files", "files": []},
            "Image": {
                "type": "files",
                "files": [{"type": "external", "external": {"url": "https://example.com/image.png"}}],
            },
        },
    }
    assert normalize_page(external_image).cover_image == "https://example.com/image.png"

    page_cover_only = {
        "id": "p",
        "created_time": "2024-01-01T00:00:00.000Z",
        "cover": {"type": "file", "file": {"url": "https://example.com/hosted-cover.png"}},
        "properties": {},
    }
    assert normalize_page(page_cover_only).cover_image == "https://example.com/hosted-cover.png"


def test_first_matching_tags_property_wins_even_when_empty():
    page = {
        "id": "p",
        "created_time": "2024-01-01T00:00:00.000Z",
        "properties": {
            "Tags": {"type": "multi_select", "multi_select": []},
            "Categories": {"type": "multi_select", "multi_select": [{"name": "ignored"}]},
        },
    }

    assert normalize_page(page).tags == []


def test_duplicate_tags_are_collapsed():
    page = {
        "id": "p",
        "created_time": "2024-01-01T00:00:00.000Z",
        "properties": {
            "Categories": {
                "type": "multi_select",
                "multi_select": [{"name": "a"}, {"name": "b"}, {"name": "a"}],
            },
        },
    }

    assert normalize_page(page).tags == ["a", "b"]


def test_read_time_ignores_non_positive_values():
    page = {
        "id": "p",
        "created_time": "2024-01-01T00:00:00.000Z",
        "properties": {
            "ReadTime": {"type": "number", "number": 0},
            "Read Time": {"type": "number", "number": 12},
        },
    }

    assert normalize_page(page).read_time == 12


def test_native_status_type_is_supported():
    page = {
        "id": "p",
        "created_time": "2024-01-01T00:00:00.000Z",
        "properties": {"Status": {"type": "status", "status": {"name": "Draft"}}},
    }

    post = normalize_page(page)

    assert post.status == "Draft"
    assert not is_published(post)


def test_is_published_is_case_insensitive():
    for status in ("Published", "published", "PUBLISHED"):
        page = {
            "id": "p",
            "created_time": "2024-01-01T00:00:00.000Z",
            "properties": {"Status": _select(status)},
        }
        assert is_published(normalize_page(page))

    for status in ("Draft", "Archived", "In review"):
        page = {
            "id": "p",
            "created_time": "2024-01-01T00:00:00.000Z",
            "properties": {"Status": _select(status)},
        }
        assert not is_published(normalize_page(page))


def test_missing_status_property_is_published():
    page = {"id": "p", "created_time": "2024-01-01T00:00:00.000Z", "properties": {}}

    assert is_published(normalize_page(page))


def test_first_present_skips_wrong_types_and_empty_values():
    properties = {
        "Title": "not-a-dict",
        "Name": {"type": "title", "title": [{"plain_text": ""}]},
        "title": _title("lowercase"),
    }

    assert first_present(properties, FIELD_SOURCES["title"]) == "lowercase"
    assert first_present({}, FIELD_SOURCES["title"]) is None
