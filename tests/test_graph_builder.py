"""Tests for module identity, go.mod parsing and graph construction."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from conftest import StubGraphRunner, make_repo, offline_resolver
from modrank.engines.graph_builder.builder import GraphBuilder, build_module_graph
from modrank.engines.graph_builder.gomod import parse_module_name
from modrank.engines.graph_builder.models import module_id
from modrank.engines.graph_builder.module import resolve_module, split_mod_path
from modrank.exceptions import GraphFormatError, ModuleFormatError


def _by_name(modules):
    return {m.name: m for m in modules}


# ── module identity ──────────────────────────────────────────────────────


class TestModuleId:
    def test_is_sha256_of_joined_fields(self):
        expected = hashlib.sha256(b"o/r/sub/go.mod/example.com/a/v1.0.0").hexdigest()
        assert module_id("o/r", "sub/go.mod", "example.com/a", "v1.0.0") == expected

    def test_deterministic(self):
        assert module_id("o/r", "go.mod", "a", "v1") == module_id("o/r", "go.mod", "a", "v1")

    def test_differs_by_go_mod_path(self):
        assert module_id("o/r", "go.mod", "a", "v1") != module_id("o/r", "x/go.mod", "a", "v1")


class TestSplitModPath:
    def test_name_and_version(self):
        assert split_mod_path("golang.org/x/mod@v0.17.0") == ("golang.org/x/mod", "v0.17.0")

    @pytest.mark.parametrize("token", ["golang.org/x/mod", "a@b@c", ""])
    def test_malformed(self, token):
        with pytest.raises(ModuleFormatError):
            split_mod_path(token)


class TestResolveModule:
    def test_creates_and_caches(self):
        cache = {}
        mod = resolve_module("example.com/a@v1", "example.com/root", "go.mod", "o/r", cache)
        assert mod is not None
        assert mod.name == "example.com/a"
        assert mod.version == "v1"
        assert mod.repository == "o/r"
        assert mod.go_mod_path == "go.mod"
        assert mod.hosted_repository == "example.com/a"
        assert mod.id == module_id("o/r", "go.mod", "example.com/a", "v1")
        assert mod.refers == [] and mod.referers == []
        assert cache == {"example.com/a@v1": mod}

    def test_cache_hit_returns_same_object(self):
        cache = {}
        first = resolve_module("example.com/a@v1", "root", "go.mod", "o/r", cache)
        second = resolve_module("example.com/a@v1", "root", "go.mod", "o/r", cache)
        assert first is second

    @pytest.mark.parametrize("token", ["go@1.21", "toolchain@go1.21.4"])
    def test_toolchain_keywords_yield_nothing(self, token):
        cache = {}
        assert resolve_module(token, "root", "go.mod", "o/r", cache) is None
        assert cache == {}

    def test_bare_root_name_has_empty_version(self):
        mod = resolve_module("example.com/root", "example.com/root", "go.mod", "o/r", {})
        assert mod.name == "example.com/root"
        assert mod.version == ""

    def test_malformed_token_raises(self):
        with pytest.raises(ModuleFormatError):
            resolve_module("example.com/a", "root", "go.mod", "o/r", {})


# ── go.mod parsing ───────────────────────────────────────────────────────


class TestParseModuleName:
    def test_simple(self):
        assert parse_module_name("module github.com/foo/bar\n\ngo 1.21\n") == "github.com/foo/bar"

    def test_quoted_with_comment(self):
        content = '// header\nmodule "github.com/foo/bar" // the module\n'
        assert parse_module_name(content) == "github.com/foo/bar"

    def test_block_form(self):
        assert parse_module_name("module (\n\tgithub.com/foo/bar\n)\n") == "github.com/foo/bar"

    def test_missing(self):
        assert parse_module_name("go 1.21\nrequire x v1\n") is None


# ── build_module_graph ───────────────────────────────────────────────────


class TestBuildModuleGraph:
    def test_chain(self):
        mods = _by_name(build_module_graph("A@v1 B@v1\nB@v1 C@v1\n", "o/r", "go.mod", "A"))
        assert set(mods) == {"A", "B", "C"}
        assert mods["A"].is_root
        assert [m.name for m in mods["A"].refers] == ["B"]
        assert [m.name for m in mods["B"].referers] == ["A"]
        assert not mods["C"].refers

    def test_bare_root_token(self):
        mods = _by_name(build_module_graph("A B@v1\nB@v1 C@v1\n", "o/r", "go.mod", "A"))
        assert mods["A"].version == ""
        assert mods["A"].is_root
        assert [m.name for m in mods["A"].refers] == ["B"]

    def test_cycle_back_to_root_keeps_root(self):
        mods = _by_name(build_module_graph("A@v1 B@v1\nB@v1 A@v1\n", "o/r", "go.mod", "A"))
        assert mods["A"].is_root
        assert mods["B"].refers == []

    def test_older_release_of_root_module_is_a_dependency(self):
        out = "A B@v1\nB@v1 A@v0.1\nA@v0.1 C@v1\n"
        mods = {m.mod_path: m for m in build_module_graph(out, "o/a", "go.mod", "A")}
        assert [p for p, m in mods.items() if m.is_root] == ["A@"]
        assert [m.mod_path for m in mods["A@v0.1"].referers] == ["B@v1"]
        assert [m.mod_path for m in mods["A@v0.1"].refers] == ["C@v1"]

    def test_bare_root_is_never_a_callee(self):
        out = "A B@v1\nB@v1 A\n"
        mods = {m.mod_path: m for m in build_module_graph(out, "o/a", "go.mod", "A")}
        assert mods["A@"].is_root
        assert mods["B@v1"].refers == []

    def test_refers_sorted_by_mod_path(self):
        out = "A@v1 c@v1\nA@v1 a@v2\nA@v1 a@v1\nA@v1 b@v1\n"
        mods = _by_name(build_module_graph(out, "o/r", "go.mod", "A"))
        assert [m.mod_path for m in mods["A"].refers] == ["a@v1", "a@v2", "b@v1", "c@v1"]

    def test_duplicate_edges_deduplicated(self):
        mods = _by_name(build_module_graph("A@v1 B@v1\nA@v1 B@v1\n", "o/r", "go.mod", "A"))
        assert len(mods["A"].refers) == 1
        assert len(mods["B"].referers) == 1

    def test_toolchain_edges_skipped(self):
        out = "A@v1 go@1.21\nA@v1 toolchain@go1.21.4\nA@v1 B@v1\n"
        mods = build_module_graph(out, "o/r", "go.mod", "A")
        assert sorted(m.name for m in mods) == ["A", "B"]

    def test_invalid_token_skips_only_its_edge(self):
        out = "A@v1 broken\nA@v1 B@v1\n"
        mods = _by_name(build_module_graph(out, "o/r", "go.mod", "A"))
        assert set(mods) == {"A", "B"}

    def test_wrong_token_count_raises(self):
        with pytest.raises(GraphFormatError):
            build_module_graph("A@v1 B@v1\nlonely@v1\n", "o/r", "go.mod", "A")

    def test_blank_lines_ignored(self):
        mods = build_module_graph("\nA@v1 B@v1\n\n", "o/r", "go.mod", "A")
        assert len(mods) == 2

    def test_root_iff_no_referers(self):
        out = "A@v1 B@v1\nA@v1 C@v1\nB@v1 D@v1\nC@v1 D@v1\n"
        mods = build_module_graph(out, "o/r", "go.mod", "A")
        assert [m.name for m in mods if m.is_root] == ["A"]
        assert all(m.referers for m in mods if m.name != "A")


# ── GraphBuilder ─────────────────────────────────────────────────────────


class TestGraphBuilder:
    def _checkout(self, tmp_path: Path, files: dict[str, str]):
        repo = make_repo(tmp_path, "https://github.com/o/r.git")
        for rel, content in files.items():
            target = repo.path / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return repo

    @pytest.mark.anyio()
    async def test_build(self, tmp_path):
        repo = self._checkout(tmp_path, {"sub/go.mod": "module example.com/a\n"})
        runner = StubGraphRunner({"example.com/a": "example.com/a example.com/b@v1\n"})
        async with offline_resolver() as resolver:
            mods = await GraphBuilder(runner, resolver).build(repo, repo.path / "sub/go.mod")
        assert sorted(m.name for m in mods) == ["example.com/a", "example.com/b"]
        assert {m.go_mod_path for m in mods} == {"sub/go.mod"}
        assert {m.repository for m in mods} == {"o/r"}
        assert runner.calls == [repo.path / "sub/go.mod"]

    @pytest.mark.anyio()
    async def test_command_failure_is_soft(self, tmp_path):
        repo = self._checkout(tmp_path, {"go.mod": "module example.com/a\n"})
        runner = StubGraphRunner({}, failing={"example.com/a"})
        async with offline_resolver() as resolver:
            assert await GraphBuilder(runner, resolver).build(repo, repo.path / "go.mod") == []

    @pytest.mark.anyio()
    async def test_malformed_output_is_soft(self, tmp_path):
        repo = self._checkout(tmp_path, {"go.mod": "module example.com/a\n"})
        runner = StubGraphRunner({"example.com/a": "example.com/a@v1\n"})
        async with offline_resolver() as resolver:
            assert await GraphBuilder(runner, resolver).build(repo, repo.path / "go.mod") == []

    @pytest.mark.anyio()
    async def test_go_mod_without_module_directive(self, tmp_path):
        repo = self._checkout(tmp_path, {"go.mod": "go 1.21\n"})
        runner = StubGraphRunner({})
        async with offline_resolver() as resolver:
            assert await GraphBuilder(runner, resolver).build(repo, repo.path / "go.mod") == []
        assert runner.calls == []

    @pytest.mark.anyio()
    async def test_missing_go_mod_propagates(self, tmp_path):
        repo = self._checkout(tmp_path, {})
        async with offline_resolver() as resolver:
            with pytest.raises(OSError):
                await GraphBuilder(StubGraphRunner({}), resolver).build(repo, repo.path / "go.mod")
