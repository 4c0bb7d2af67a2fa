"""Unit tests for engines.sql.placeholder (#{name} templates)."""

import pytest

from querybridge.core.exceptions import InjectionDetectedError
from querybridge.engines.sql import PlaceholderTemplateEngine, extract_placeholders
from querybridge.engines.sql.placeholder import render


class TestPlaceholderRender:
    def test_simple_substitution(self):
        e = PlaceholderTemplateEngine()
        assert (
            e.render("SELECT * FROM t WHERE id=#{id}", {"id": "5"})
            == "SELECT * FROM t WHERE id=5"
        )

    def test_values_are_not_quoted(self):
        e = PlaceholderTemplateEngine()
        assert (
            e.render("SELECT * FROM t WHERE name='#{name}'", {"name": "bob"})
            == "SELECT * FROM t WHERE name='bob'"
        )

    def test_repeated_placeholder_substituted_everywhere(self):
        e = PlaceholderTemplateEngine()
        out = e.render("SELECT #{a}, #{a}, #{b}", {"a": "1", "b": "2"})
        assert out == "SELECT 1, 1, 2"

    def test_whitespace_inside_braces(self):
        assert render("SELECT #{ id }", {"id": 7}) == "SELECT 7"

    def test_missing_value_left_verbatim(self):
        e = PlaceholderTemplateEngine()
        assert e.render("WHERE id=#{id}", {}) == "WHERE id=#{id}"

    def test_none_value_left_verbatim(self):
        e = PlaceholderTemplateEngine()
        assert e.render("WHERE id=#{id}", {"id": None}) == "WHERE id=#{id}"

    def test_no_placeholders_returns_template(self):
        e = PlaceholderTemplateEngine()
        st = e.render_statement("SELECT 1", {"id": "1"})
        assert st.sql == "SELECT 1"
        assert st.params == {}

    def test_value_containing_placeholder_is_not_rescanned(self):
        e = PlaceholderTemplateEngine()
        out = e.render("SELECT #{a}, #{b}", {"a": "#{b}", "b": "2"})
        assert out == "SELECT #{b}, 2"

    def test_unused_bag_entries_ignored(self):
        e = PlaceholderTemplateEngine()
        st = e.render_statement("SELECT #{a}", {"a": "1", "extra": "x"})
        assert st.params == {"a": "1"}

    def test_deterministic(self):
        e = PlaceholderTemplateEngine()
        t = "SELECT * FROM t WHERE a=#{a} AND b=#{b}"
        bag = {"a": "1", "b": "2"}
        assert e.render(t, bag) == e.render(t, bag)


class TestPlaceholderScreening:
    def test_injection_rejected_when_screening(self):
        e = PlaceholderTemplateEngine()
        with pytest.raises(InjectionDetectedError) as exc:
            e.render(
                "SELECT * FROM t WHERE id=#{id}",
                {"id": "1; DROP TABLE t"},
                screen_injection=True,
            )
        assert exc.value.name == "id"

    def test_injection_passes_when_screening_off(self):
        e = PlaceholderTemplateEngine()
        out = e.render("WHERE id=#{id}", {"id": "1; DROP TABLE t"})
        assert out == "WHERE id=1; DROP TABLE t"

    def test_template_text_never_screened(self):
        e = PlaceholderTemplateEngine()
        out = e.render(
            "SELECT 1; -- comment\nSELECT #{id}", {"id": "2"}, screen_injection=True
        )
        assert out.endswith("SELECT 2")

    def test_unused_bad_value_not_screened(self):
        e = PlaceholderTemplateEngine()
        out = e.render("SELECT #{a}", {"a": "1", "b": "x -- y"}, screen_injection=True)
        assert out == "SELECT 1"


def test_extract_placeholders_first_appearance_order():
    assert extract_placeholders("#{b} #{a} #{b} #{ c }") == ["b", "a", "c"]


def test_parse_parameters():
    assert PlaceholderTemplateEngine().parse_parameters("SELECT 1") == []
