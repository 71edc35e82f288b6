"""Tests for XPath selector synthesis."""

import pytest

from adaptive_scraper.pipeline.document import node_text, parse_html, select
from adaptive_scraper.pipeline.synthesizer import (
    AmbiguousMatchError,
    FieldNotFoundError,
    PathSynthesizer,
)


def _texts(root, expression):
    return [node_text(n) for n in select(root, expression)]


class TestScalarSynthesis:
    def test_class_predicate_preferred(self):
        root = parse_html('<html><body><h1 class="title">Widget</h1></body></html>')
        assert PathSynthesizer().find(root, "Widget") == "//h1[@class='title']"

    def test_id_predicate_beats_position(self):
        root = parse_html(
            '<html><body><div><span id="price">9.99</span><span>other</span></div></body></html>'
        )
        assert PathSynthesizer().find(root, "9.99") == "//span[@id='price']"

    def test_deterministic(self):
        markup = (
            "<html><body><div><p>a</p><p>Widget</p></div>"
            "<div><p>Widget</p></div></body></html>"
        )
        first = PathSynthesizer().find(parse_html(markup), "Widget")
        second = PathSynthesizer().find(parse_html(markup), "Widget")
        assert first == second

    def test_every_match_carries_value(self):
        root = parse_html(
            "<html><body><ul><li>one</li><li>two</li><li>three</li></ul></body></html>"
        )
        expression = PathSynthesizer().find(root, "two")
        assert _texts(root, expression) == ["two"]

    def test_whitespace_is_normalized(self):
        root = parse_html("<html><body><p>  Hello\n     world </p></body></html>")
        assert PathSynthesizer().find(root, "Hello world") == "//p"

    def test_innermost_element_is_targeted(self):
        root = parse_html('<html><body><div><b class="name">Widget</b></div></body></html>')
        assert PathSynthesizer().find(root, "Widget") == "//b[@class='name']"

    def test_ignored_identifiers_are_not_used(self):
        root = parse_html(
            '<html><body><div><span id="price">9.99</span><span>other</span></div></body></html>'
        )
        expression = PathSynthesizer(ignored_identifiers=["price"]).find(root, "9.99")
        assert "price" not in expression
        assert _texts(root, expression) == ["9.99"]

    def test_value_with_quotes(self):
        root = parse_html("""<html><body><p class="q">It's "fine"</p></body></html>""")
        expression = PathSynthesizer().find(root, """It's "fine\"""")
        assert _texts(root, expression) == ["""It's "fine\""""]

    def test_not_found(self):
        root = parse_html("<html><body><p>Widget</p></body></html>")
        with pytest.raises(FieldNotFoundError):
            PathSynthesizer().find(root, "Gadget")

    def test_empty_value_not_found(self):
        root = parse_html("<html><body><p>Widget</p></body></html>")
        with pytest.raises(FieldNotFoundError):
            PathSynthesizer().find(root, "   ")


class TestListSynthesis:
    def test_list_resolves_to_container_path(self):
        root = parse_html(
            '<html><body><ul class="tags"><li>a</li><li>b</li></ul><p>a</p></body></html>'
        )
        expression = PathSynthesizer().find(root, ["a", "b"])
        assert expression == "//ul[@class='tags']/li"
        assert _texts(root, expression) == ["a", "b"]

    def test_list_below_distant_distinguishing_ancestor(self):
        block = "<div><div><div><div><ul>{}</ul></div></div></div></div>"
        root = parse_html(
            "<html><body>"
            + block.format("<li><span>a</span></li><li><span>b</span></li>")
            + block.format("<li><span>c</span></li>")
            + "</body></html>"
        )
        expression = PathSynthesizer().find(root, ["a", "b"])
        assert expression == "/html/body/div[1]/div/div/div/ul/li/span"
        assert _texts(root, expression) == ["a", "b"]

    def test_list_requires_exact_sequence(self):
        root = parse_html("<html><body><ul><li>a</li><li>b</li></ul></body></html>")
        with pytest.raises(FieldNotFoundError):
            PathSynthesizer().find(root, ["a", "c"])

    def test_empty_list_not_found(self):
        root = parse_html("<html><body><ul><li>a</li></ul></body></html>")
        with pytest.raises(FieldNotFoundError):
            PathSynthesizer().find(root, [])


class TestAmbiguity:
    MARKUP = '<html><body><h2 class="a">A</h2><h3 class="a">A</h3></body></html>'

    def test_default_takes_first_in_document_order(self):
        assert PathSynthesizer().find(parse_html(self.MARKUP), "A") == "//h2[@class='a']"

    def test_unique_raises_on_equally_ranked_targets(self):
        with pytest.raises(AmbiguousMatchError):
            PathSynthesizer().find(parse_html(self.MARKUP), "A", unique=True)

    def test_unique_passes_with_single_target(self):
        root = parse_html('<html><body><h1 class="title">Widget</h1></body></html>')
        assert PathSynthesizer().find(root, "Widget", unique=True) == "//h1[@class='title']"

    def test_candidates_ranked_best_first(self):
        root = parse_html('<html><body><h1 class="title">Widget</h1></body></html>')
        candidates = PathSynthesizer().candidates(root, "Widget")
        assert candidates[0].expression == "//h1[@class='title']"
        assert candidates[-1].positional_steps >= candidates[0].positional_steps
        assert "/html/body/h1" in [c.expression for c in candidates]
