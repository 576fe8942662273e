"""Tests for {{ path }} template rendering.

Covers lookup semantics, whole-value passthrough, text substitution, strict
failure on unresolved references, and purity of rendering.
"""

import pytest

from cannon.runtime.errors import UnresolvedTemplateError
from cannon.spec.templating import find_references, lookup, render, render_string


VARS = {
    "chainId": 13370,
    "settings": {"owner": "0xabc", "flag": True},
    "contracts": {
        "Token": {"address": "0x1111", "abi": [{"name": "mint"}], "constructorArgs": ["1", "2"]},
    },
    "imports": {"oracle": {"contracts": {"Feed": {"address": "0x2222"}}}},
}


# ============================================================================
# Lookup
# ============================================================================


class TestLookup:
    """Tests for dotted-path lookup."""

    def test_nested_mapping(self):
        """Dotted paths walk nested mappings."""
        assert lookup(VARS, "contracts.Token.address") == "0x1111"

    def test_list_index(self):
        """Numeric segments index into lists."""
        assert lookup(VARS, "contracts.Token.constructorArgs.1") == "2"

    def test_missing_key_raises(self):
        """A missing key raises UnresolvedTemplateError naming the path."""
        with pytest.raises(UnresolvedTemplateError) as exc_info:
            lookup(VARS, "contracts.Missing.address")
        assert exc_info.value.path == "contracts.Missing.address"

    def test_index_out_of_range_raises(self):
        """An out-of-range index is unresolved, not an IndexError."""
        with pytest.raises(UnresolvedTemplateError):
            lookup(VARS, "contracts.Token.constructorArgs.5")

    def test_expression_syntax_rejected(self):
        """Anything beyond plain lookups is rejected."""
        with pytest.raises(UnresolvedTemplateError):
            lookup(VARS, "settings.owner()")


# ============================================================================
# Rendering
# ============================================================================


class TestRender:
    """Tests for render and render_string."""

    def test_whole_placeholder_keeps_type(self):
        """A string that is exactly one placeholder yields the raw value."""
        assert render_string("{{ chainId }}", VARS) == 13370
        assert render_string("{{contracts.Token.constructorArgs}}", VARS) == ["1", "2"]

    def test_embedded_placeholder_is_text(self):
        """Placeholders inside other text render as strings."""
        assert render_string("chain-{{ chainId }}-{{ settings.owner }}", VARS) == "chain-13370-0xabc"

    def test_booleans_render_lowercase(self):
        """Booleans embedded in text render as true/false."""
        assert render_string("flag={{ settings.flag }}", VARS) == "flag=true"

    def test_nested_structures(self):
        """render walks dicts and lists; keys are left alone."""
        config = {
            "target": ["{{ contracts.Token.address }}"],
            "{{ settings.owner }}": "{{ imports.oracle.contracts.Feed.address }}",
        }
        assert render(config, VARS) == {
            "target": ["0x1111"],
            "{{ settings.owner }}": "0x2222",
        }

    def test_non_strings_pass_through(self):
        """Numbers, booleans and None are copied unchanged."""
        assert render({"a": 1, "b": None, "c": False}, VARS) == {"a": 1, "b": None, "c": False}

    def test_unresolved_in_text_raises_with_template(self):
        """Unresolved placeholders in text fail with the template attached."""
        with pytest.raises(UnresolvedTemplateError) as exc_info:
            render({"args": ["x {{ txns.nope.hash }}"]}, VARS)
        assert exc_info.value.path == "txns.nope.hash"
        assert exc_info.value.template == "x {{ txns.nope.hash }}"

    def test_render_is_pure(self):
        """Repeated renders agree and never mutate input or variables."""
        config = {"args": ["{{ contracts.Token.abi }}", "{{ settings.owner }}"]}
        first = render(config, VARS)
        first["args"][0].append({"name": "mutated"})
        second = render(config, VARS)

        assert second == {"args": [[{"name": "mint"}], "0xabc"]}
        assert VARS["contracts"]["Token"]["abi"] == [{"name": "mint"}]
        assert config == {"args": ["{{ contracts.Token.abi }}", "{{ settings.owner }}"]}


# ============================================================================
# Reference Discovery
# ============================================================================


class TestFindReferences:
    """Tests for find_references."""

    def test_finds_all_in_order_deduplicated(self):
        """References are returned once each, in first-seen order."""
        config = {
            "args": ["{{ contracts.B.address }}", "{{settings.x}}-{{ contracts.B.address }}"],
            "target": "{{ txns.setup.hash }}",
        }
        assert find_references(config) == [
            "contracts.B.address",
            "settings.x",
            "txns.setup.hash",
        ]

    def test_no_references(self):
        """Plain values have no references."""
        assert find_references({"artifact": "Token", "args": [1, 2]}) == []
