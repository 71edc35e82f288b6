"""Tests for selector based extraction."""

from adaptive_scraper.pipeline.document import parse_html
from adaptive_scraper.pipeline.extraction import Configuration, FieldSpec
from adaptive_scraper.pipeline.extractor import extract, flatten
from adaptive_scraper.pipeline.variant import VariantFingerprinter

PAGE = parse_html(
    """
    <html><body>
      <h1 class="title">  Widget </h1>
      <span class="price">9.99</span>
      <ul><li>a</li><li>b</li></ul>
      <a href="/item/1">link</a>
    </body></html>
    """
)


def _config(**fields):
    return Configuration(document_type="product", fields=fields)


class TestExtract:
    def test_all_fields_resolve(self):
        result = extract(
            PAGE,
            _config(title=["//h1[@class='title']"], tags=["//li"]),
            "product",
            url="https://example.com/1",
        )
        assert result.fields == {"title": ["Widget"], "tags": ["a", "b"]}
        assert result.unresolved == set()
        assert result.status == "complete"
        assert result.variant_id
        assert result.url == "https://example.com/1"

    def test_first_matching_candidate_wins(self):
        result = extract(PAGE, _config(title=["//h2", "//h1", "//span"]), "product")
        assert result.fields["title"] == ["Widget"]
        assert result.selectors["title"] == "//h1"

    def test_invalid_selector_is_skipped(self):
        result = extract(PAGE, _config(title=["//h1[", "//h1"]), "product")
        assert result.fields["title"] == ["Widget"]

    def test_partial_failure_continues(self):
        result = extract(
            PAGE,
            _config(title=["//h2"], price=["//span[@class='price']"]),
            "product",
        )
        assert result.fields == {"price": ["9.99"]}
        assert result.unresolved == {"title"}
        assert result.status == "partial"

    def test_string_results(self):
        result = extract(PAGE, _config(link=["//a/@href"]), "product")
        assert result.fields["link"] == ["/item/1"]

    def test_count_expression_does_not_resolve(self):
        result = extract(PAGE, _config(n=["count(//h2)"]), "product")
        assert result.fields == {}
        assert result.unresolved == {"n"}
        assert result.status != "complete"

    def test_missing_configuration(self):
        result = extract(PAGE, None, "product")
        assert result.fields == {}
        assert result.status == "failed"

    def test_variant_matches_fingerprinter(self):
        fingerprinter = VariantFingerprinter()
        result = extract(PAGE, _config(title=["//h1"]), "product", fingerprinter=fingerprinter)
        assert result.variant_id == fingerprinter.fingerprint("product")
        assert fingerprinter.resolved == {"title": "//h1"}


class TestFlatten:
    def test_scalar_and_list_shapes(self):
        result = extract(PAGE, _config(title=["//h1"], tags=["//li"]), "product")
        schema = [FieldSpec(name="title"), FieldSpec(name="tags", shape="list")]
        assert flatten(result, schema) == {"title": "Widget", "tags": ["a", "b"]}
