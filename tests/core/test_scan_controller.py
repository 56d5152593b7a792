# tests/core/test_scan_controller.py
import pytest

from reconciler.controllers.scan_controller import ScanController
from reconciler.managers.page_config_manager import PageConfigManager
from reconciler.model import ScanPolicy, ViolationCategory as VC
from reconciler.services.file_walk_service import FileWalkService
from reconciler.utils.url_utils import UrlUtils

VALID_PAGE = (
    '<html><head><link rel="canonical" href="{canonical}">'
    '<script type="application/ld+json">{{"@type": "WebPage"}}</script>'
    '</head><body><h1>Title</h1><h2>Sub</h2></body></html>'
)


def write(root, rel_path, content):
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def valid_page(rel_path):
    return VALID_PAGE.format(canonical=UrlUtils.to_canonical_url(rel_path, "https://www.example.com"))


@pytest.fixture
def site(tmp_path):
    root = tmp_path / "public"
    root.mkdir()
    return root


@pytest.fixture
def controller():
    """ScanController met standaardbeleid en een lege page-config."""
    return ScanController(ScanPolicy(), PageConfigManager.from_mapping({}))


def test_clean_site(site, controller):
    write(site, "index.html", valid_page("index.html"))
    write(site, "blog/post.html", valid_page("blog/post.html"))

    report = controller.run(site, progress=False)

    assert report.total == 2
    assert report.valid == 2
    assert report.invalid == 0
    assert report.errors == 0
    assert [r.file for r in report.results] == ["blog/post.html", "index.html"]
    assert report.results[1].canonical == "https://www.example.com/"
    assert report.results[0].heading_map[0].text == "Title"


def test_malformed_structured_data_is_isolated(site, controller):
    """Eén kapot JSON-LD blok blokkeert de andere negen bestanden niet."""
    for i in range(9):
        write(site, f"page-{i}.html", valid_page(f"page-{i}.html"))
    write(site, "broken.html", valid_page("broken.html").replace(
        '{"@type": "WebPage"}', '{"@type": "WebPage",'
    ))

    report = controller.run(site, progress=False)

    assert report.total == 10
    assert report.valid == 10
    with_errors = [r for r in report.results if r.schema_parse_errors]
    assert [r.file for r in with_errors] == ["broken.html"]
    assert report.per_category_counts["SchemaParseError"] == 1
    assert report.warnings == 1


def test_counts_and_categories(site, controller):
    write(site, "a.html", valid_page("a.html").replace("<h2>Sub</h2>", "<h1>Again</h1><h4>Deep</h4>"))
    write(site, "b.html", "<html><body><h1>No canonical</h1></body></html>")

    report = controller.run(site, progress=False)

    assert report.total == 2
    assert report.valid == 1
    assert report.invalid == 1
    assert report.errors == 1
    assert report.per_category_counts["DuplicateH1"] == 1
    assert report.per_category_counts["MissingCanonical"] == 1
    assert report.per_category_counts["MissingSchema"] == 0
    assert report.top_offenders[0]["file"] == "a.html"


def test_required_schema_from_page_config(site):
    write(site, "faq.html", valid_page("faq.html"))
    page_config = PageConfigManager.from_mapping({"faq": {"requiredSchemas": ["WebPage", "FAQPage"]}})
    report = ScanController(ScanPolicy(), page_config).run(site, progress=False)

    result = report.results[0]
    assert result.status == "invalid"
    assert [(v.category, v.detail) for v in result.violations] == [(VC.MISSING_SCHEMA, "FAQPage")]
    assert report.coverage["configured_incomplete"] == ["faq.html"]


def test_fix_writes_back_and_second_run_is_clean(site, controller):
    path = write(site, "blog/post.html", (
        '<html><head><link rel="canonical" href="https://example.com/blog/post.html"></head>'
        '<body><h1>A</h1><h1>B</h1></body></html>'
    ))

    first = controller.run(site, fix=True, progress=False)
    assert first.fixed == 1
    assert first.errors == 0
    assert first.results[0].modified is True
    assert len(first.results[0].fixes) == 2

    content = path.read_text(encoding="utf-8")
    assert 'href="https://www.example.com/blog/post"' in content
    assert "<h1>A</h1><h2>B</h2>" in content

    second = controller.run(site, fix=True, progress=False)
    assert second.fixed == 0
    assert path.read_text(encoding="utf-8") == content


def test_without_fix_nothing_is_written(site, controller):
    original = '<html><head><link rel="canonical" href="http://www.example.com/x"></head></html>'
    path = write(site, "x.html", original)
    report = controller.run(site, progress=False)
    assert report.fixed == 0
    assert path.read_text(encoding="utf-8") == original


def test_crlf_is_preserved_on_fix(site, controller):
    path = site / "p.html"
    path.write_bytes(b'<html>\r\n<head><link rel="canonical" href="http://www.example.com/p"></head>\r\n</html>')
    controller.run(site, fix=True, progress=False)
    assert path.read_bytes() == b'<html>\r\n<head><link rel="canonical" href="https://www.example.com/p"></head>\r\n</html>'


def test_unreadable_file_is_reported_not_raised(site, controller):
    write(site, "ok.html", valid_page("ok.html"))
    (site / "latin1.html").write_bytes(b"<html><body><h1>caf\xe9</h1></body></html>")

    report = controller.run(site, progress=False)

    assert report.total == 1
    assert report.io_errors == 1
    bad = next(r for r in report.results if r.file == "latin1.html")
    assert bad.status == "error"
    assert bad.error


def test_denied_and_hidden_directories_are_skipped(site, controller):
    write(site, "index.html", valid_page("index.html"))
    write(site, "node_modules/pkg/readme.html", "<h1>x</h1>")
    write(site, "i18n/de/index.html", "<h1>x</h1>")
    write(site, ".cache/page.html", "<h1>x</h1>")
    write(site, "notes.txt", "not html")

    report = controller.run(site, progress=False)
    assert [r.file for r in report.results] == ["index.html"]


def test_missing_root_raises(tmp_path, controller):
    with pytest.raises(FileNotFoundError):
        controller.run(tmp_path / "missing", progress=False)


def test_file_walk_custom_deny_list(site):
    write(site, "i18n/de/index.html", "<h1>x</h1>")
    write(site, "drafts/a.html", "<h1>x</h1>")
    assert FileWalkService(deny_dirs=["drafts"]).iter_html_files(site) == ["i18n/de/index.html"]


def test_parallel_run_matches_sequential(site):
    for name in ["c.html", "a.html", "b/index.html", "b/z.html"]:
        write(site, name, valid_page(name).replace("<h2>Sub</h2>", "<h3>Skip</h3>"))
    page_config = PageConfigManager.from_mapping({})

    sequential = ScanController(ScanPolicy(), page_config).run(site, workers=1, progress=False)
    parallel = ScanController(ScanPolicy(), page_config).run(site, workers=2, progress=False)

    assert [r.file for r in parallel.results] == ["a.html", "b/index.html", "b/z.html", "c.html"]
    assert [r.model_dump() for r in parallel.results] == [r.model_dump() for r in sequential.results]
    assert parallel.per_category_counts == sequential.per_category_counts


def test_page_config_warning_is_carried_into_report(site, tmp_path):
    write(site, "index.html", valid_page("index.html"))
    page_config = PageConfigManager(tmp_path / "absent.json")
    report = ScanController(ScanPolicy(), page_config).run(site, progress=False)
    assert len(report.run_warnings) == 1
    assert "not found" in report.run_warnings[0]


def test_fix_run_counts_already_correct_canonicals(site, controller):
    write(site, "good.html", valid_page("good.html"))
    write(site, "bad.html", valid_page("bad.html").replace("https://www.example.com/bad", "http://example.com/bad.html"))

    report = controller.run(site, fix=True, progress=False)

    assert report.fixed == 1
    assert report.already_correct == 1
    assert [r.file for r in report.results if r.already_correct] == ["good.html"]


def test_bare_stem_key_does_not_leak_into_subdirectory_index(site):
    """De sleutel 'index' hoort bij index.html, niet bij blog/index.html."""
    write(site, "index.html", valid_page("index.html").replace('"WebPage"', '"Organization"'))
    write(site, "blog/index.html", valid_page("blog/index.html"))
    page_config = PageConfigManager.from_mapping({"index": {"requiredSchemas": ["Organization"]}})

    report = ScanController(ScanPolicy(), page_config).run(site, progress=False)

    blog = next(r for r in report.results if r.file == "blog/index.html")
    assert blog.status == "valid"
    assert blog.violations == []
    assert report.coverage["configured_complete"] == ["index.html"]
    assert report.coverage["configured_incomplete"] == []
    assert report.coverage["unconfigured"] == ["blog/index.html"]


def test_missing_schema_without_any_structured_data(site):
    write(site, "faq.html", valid_page("faq.html").replace(
        '<script type="application/ld+json">{"@type": "WebPage"}</script>', ""
    ))
    page_config = PageConfigManager.from_mapping({"faq": {"requiredSchemas": ["FAQPage"]}})

    report = ScanController(ScanPolicy(), page_config).run(site, progress=False)

    result = report.results[0]
    assert result.schema_block_count == 0
    assert [(v.category, v.detail) for v in result.violations] == [(VC.MISSING_SCHEMA, "FAQPage")]
    assert report.coverage["configured_incomplete"] == ["faq.html"]
