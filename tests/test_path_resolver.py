import os

import pytest

from p4scm_core.errors import CommandFailed
from p4scm_ops.path_resolver import PathResolver, select_mapping


class TestSelectMapping:
    def test_single_line(self) -> None:
        out = "//depot/a.c //ws/a.c /home/me/ws/a.c\n"
        assert select_mapping(out, "//depot/a.c") == "/home/me/ws/a.c"
        assert select_mapping(out, "//ws/a.c") == "/home/me/ws/a.c"

    def test_local_path_with_spaces(self) -> None:
        out = "//depot/a.c //ws/a.c C:\\My Work\\ws\\a.c\r\n"
        assert select_mapping(out, "//ws/a.c") == "C:\\My Work\\ws\\a.c"

    def test_first_exact_match_wins(self) -> None:
        out = (
            "//depot/other/a.c //ws/other/a.c /ws/other/a.c\n"
            "-//depot/a.c //ws/a.c /ws/excluded/a.c\n"
            "//depot/a.c //ws/a.c /ws/first/a.c\n"
            "//depot/a.c //ws/a.c /ws/second/a.c\n"
        )
        assert select_mapping(out, "//depot/a.c") == "/ws/first/a.c"

    def test_dev_null_and_no_match(self) -> None:
        assert select_mapping("//depot/a.c //ws/a.c /dev/null\n", "//depot/a.c") is None
        assert select_mapping("//depot/b.c //ws/b.c /ws/b.c\n", "//depot/a.c") is None
        assert select_mapping("", "//depot/a.c") is None

    def test_workspace_path_with_spaces(self) -> None:
        out = "//depot/src/my file.c //ws/src/my file.c /home/me/ws/src/my file.c\n"
        assert select_mapping(out, "//ws/src/my file.c") == "/home/me/ws/src/my file.c"

    def test_depot_path_with_spaces(self) -> None:
        out = "//depot/my dir/a b.c //ws/my dir/a b.c /w/my dir/a b.c\n"
        assert select_mapping(out, "//depot/my dir/a b.c") == "/w/my dir/a b.c"
        win = "//depot/my dir/a.c //ws/my dir/a.c C:\\ws\\my dir\\a.c\n"
        assert select_mapping(win, "//depot/my dir/a.c") == "C:\\ws\\my dir\\a.c"

    def test_query_must_be_a_whole_column(self) -> None:
        out = "//depot/a.c.orig //ws/a.c.orig /w/a.c.orig\n"
        assert select_mapping(out, "//depot/a.c") is None
        assert select_mapping(out, "//ws/a.c") is None


@pytest.mark.asyncio
async def test_duplicate_paths_resolve_once(fake_executor) -> None:
    fake_executor.on("where", ["/a/b"], stdout=b"//depot/a/b /a/b /abs/a/b\n")
    resolver = PathResolver(fake_executor)

    result = await resolver.resolve(["/a/b"] * 5 + [""])

    assert result == {"/a/b": "/abs/a/b"}
    assert fake_executor.count("where") == 1
    assert fake_executor.calls[0] == ("where", ("/a/b",), False)


@pytest.mark.asyncio
async def test_one_failure_does_not_fail_the_batch(fake_executor) -> None:
    fake_executor.on("where", ["//ws/good"], stdout=b"//depot/good //ws/good /ws/good\n")
    fake_executor.on("where", ["//ws/broken"], error=CommandFailed("where", ["//ws/broken"], "connect failed", 1))
    fake_executor.on("where", ["//ws/unmapped"], stderr=b"//ws/unmapped - file(s) not in client view.\n")
    fake_executor.on("where", ["//ws/missing"], stderr=b"//ws/missing - no such file(s).\n")

    result = await PathResolver(fake_executor).resolve(["//ws/good", "//ws/broken", "//ws/unmapped", "//ws/missing"])

    assert result == {
        "//ws/good": "/ws/good",
        "//ws/broken": None,
        "//ws/unmapped": None,
        "//ws/missing": None,
    }


@pytest.mark.asyncio
async def test_empty_input_issues_no_queries(fake_executor) -> None:
    assert await PathResolver(fake_executor).resolve([]) == {}
    assert fake_executor.calls == []




@pytest.mark.asyncio
async def test_non_ascii_path_round_trips_through_where(fake_executor) -> None:
    # Decoded tagged strings carry one character per byte.
    decoded = "//ws/café.c".encode("utf-8").decode("latin-1")
    native = os.fsdecode("//ws/café.c".encode("utf-8"))
    fake_executor.on("where", [native], stdout="//depot/café.c //ws/café.c /w/café.c\n".encode("utf-8"))

    result = await PathResolver(fake_executor).resolve([decoded])

    assert result == {decoded: os.fsdecode("/w/café.c".encode("utf-8"))}
    assert fake_executor.calls == [("where", (native,), False)]


@pytest.mark.asyncio
async def test_non_utf8_local_path_survives(fake_executor) -> None:
    fake_executor.on("where", ["//ws/x"], stdout=b"//depot/x //ws/x /ws/caf\xe9\n")
    [(path, local)] = (await PathResolver(fake_executor).resolve(["//ws/x"])).items()
    assert os.fsencode(local) == b"/ws/caf\xe9"
