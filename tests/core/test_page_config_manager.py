# tests/core/test_page_config_manager.py
import json

import pytest

from reconciler.managers.page_config_manager import PageConfigManager
from reconciler.model import PageConfigEntry


@pytest.fixture
def config_file(tmp_path):
    """Schrijft een page-config bestand en geeft het pad terug."""
    def _write(data, name="page-config.json"):
        path = tmp_path / name
        if isinstance(data, str):
            path.write_text(data, encoding="utf-8")
        else:
            path.write_text(json.dumps(data), encoding="utf-8")
        return path
    return _write


def test_sectioned_layout(config_file):
    path = config_file({
        "pages": {"faq": {"type": "FAQ", "requiredSchemas": ["WebPage", "FAQPage"]}},
        "blogPosts": {"blog/launch.html": {"requiredSchemas": "Article"}},
        "caseStudies": {"acme": {"type": "CaseStudy", "requiredSchemas": ["Article", "Organization"]}},
    })
    manager = PageConfigManager(path)

    assert manager.load_warning is None
    assert len(manager) == 3
    assert manager.page_ids() == ["acme", "blog/launch", "faq"]

    faq = manager.lookup("faq")
    assert faq.content_type == "FAQ"
    assert faq.required_schema_types == ["WebPage", "FAQPage"]
    assert manager.lookup("blog/launch").required_schema_types == ["Article"]
    assert manager.lookup("blog/launch").content_type == "WebPage"


def test_flat_layout(config_file):
    manager = PageConfigManager(config_file({"faq.html": {"requiredSchemas": ["FAQPage"]}}))
    assert manager.lookup("faq").required_schema_types == ["FAQPage"]
    assert manager.lookup("faq.html") is manager.lookup("faq")


def test_lookup_for_path_prefers_full_stem():
    manager = PageConfigManager.from_mapping({
        "post": {"requiredSchemas": ["WebPage"]},
        "blog/post": {"requiredSchemas": ["Article"]},
    })
    assert manager.lookup_for_path("blog/post.html").required_schema_types == ["Article"]
    assert manager.lookup_for_path("news/post.html").required_schema_types == ["WebPage"]
    assert manager.lookup_for_path("other.html") is None


def test_missing_file_degrades_to_empty(tmp_path):
    """Een ontbrekend configbestand laat de run niet falen."""
    manager = PageConfigManager(tmp_path / "nope.json")
    assert len(manager) == 0
    assert "not found" in manager.load_warning
    assert manager.lookup("faq") is None


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_malformed_file_degrades_to_empty(config_file, content):
    manager = PageConfigManager(config_file(content))
    assert len(manager) == 0
    assert manager.load_warning is not None


def test_invalid_entries_are_skipped(config_file):
    manager = PageConfigManager(config_file({
        "good": {"requiredSchemas": ["WebPage"]},
        "bad-shape": ["WebPage"],
        "bad-types": {"requiredSchemas": [1, 2]},
    }))
    assert manager.page_ids() == ["good"]
    assert manager.load_warning is None


def test_entry_normalizes_required_types():
    entry = PageConfigEntry.model_validate({"page_id": "x", "requiredSchemas": [" Article ", "Article", "", "FAQPage"]})
    assert entry.required_schema_types == ["Article", "FAQPage"]


def test_bare_stem_only_applies_to_an_unambiguous_file():
    """Een kale sleutel wordt niet gedeeld door bestanden met dezelfde naam."""
    manager = PageConfigManager.from_mapping({
        "index": {"requiredSchemas": ["Organization"]},
        "post": {"requiredSchemas": ["Article"]},
    })
    scanned = ["index.html", "blog/index.html", "news/post.html", "docs/post.html"]

    resolved = manager.resolve_paths(scanned)

    assert resolved["index.html"].page_id == "index"
    assert resolved["blog/index.html"] is None
    assert resolved["news/post.html"] is None
    assert resolved["docs/post.html"] is None
    assert manager.lookup_for_path("blog/index.html", scanned) is None
    assert manager.lookup_for_path("blog/index.html").page_id == "index"


def test_bare_stem_applies_when_the_other_file_has_its_own_entry():
    manager = PageConfigManager.from_mapping({
        "post": {"requiredSchemas": ["WebPage"]},
        "blog/post": {"requiredSchemas": ["Article"]},
    })
    resolved = manager.resolve_paths(["blog/post.html", "news/post.html"])
    assert resolved["blog/post.html"].required_schema_types == ["Article"]
    assert resolved["news/post.html"].required_schema_types == ["WebPage"]
