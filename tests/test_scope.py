"""
Test cases for tool scope selection.
"""

from relaykit.assistant.tools.scope import CATALOG_TOOLS, ToolScopeSelector


def resolver(server):
    return {"deploy": ["deploy.run", "deploy.status"]}.get(server, [])


class TestToolScopeSelector:
    """Test cases for ToolScopeSelector."""

    def test_default_allows_everything(self):
        visibility = ToolScopeSelector(default_allow_all=True).merged_visibility()

        assert visibility.allowed_builtin_names is None
        assert visibility.allowed_external_names is None
        assert visibility.include_external

    def test_default_deny_exposes_only_catalog(self):
        visibility = ToolScopeSelector(default_allow_all=False).merged_visibility()

        assert visibility.allowed_builtin_names == set(CATALOG_TOOLS)
        assert not visibility.include_external

    def test_per_turn_scope_is_consumed(self):
        selector = ToolScopeSelector()
        accepted = selector.set_scope(builtins=["ReadFileTool"], external_methods=["docs.search", "bogus"])

        assert accepted == {
            "acceptedBuiltIns": ["ReadFileTool"],
            "acceptedMcp": ["docs.search"],
            "stickyApplied": False,
        }

        visibility = selector.merged_visibility()
        assert visibility.allowed_builtin_names == {"ReadFileTool"} | CATALOG_TOOLS
        assert visibility.allowed_external_names == {"docs.search"}
        assert visibility.allows_external("docs", "search")

        assert selector.merged_visibility().allowed_builtin_names is None

    def test_sticky_scope_persists_and_merges(self):
        selector = ToolScopeSelector()
        selector.set_scope(external_servers=["deploy"], sticky=True, resolver=resolver)
        selector.set_scope(builtins=["ReadFileTool"])

        first = selector.merged_visibility()
        second = selector.merged_visibility()

        assert first.allowed_external_names == {"deploy.run", "deploy.status"}
        assert "ReadFileTool" in first.allowed_builtin_names
        assert second.allowed_external_names == {"deploy.run", "deploy.status"}
        assert "ReadFileTool" not in second.allowed_builtin_names

    def test_builtins_only_scope_hides_external(self):
        selector = ToolScopeSelector()
        selector.set_scope(builtins=["ReadFileTool"], sticky=True)

        visibility = selector.merged_visibility()

        assert not visibility.include_external
        assert not visibility.allows_external("deploy", "run")

    def test_clear_sticky(self):
        selector = ToolScopeSelector()
        selector.set_scope(builtins=["ReadFileTool"], sticky=True)
        selector.clear_sticky()

        assert selector.get_sticky() == (set(), set())
        assert selector.merged_visibility().allowed_builtin_names is None

    def test_describe(self):
        selector = ToolScopeSelector()
        selector.set_scope(external_methods=["docs.search"], sticky=True)
        selector.set_scope(builtins=["B", "A"])

        assert selector.describe() == {
            "stickyBuiltIns": [],
            "stickyMcp": ["docs.search"],
            "currentBuiltIns": ["A", "B"],
            "currentMcp": [],
        }
