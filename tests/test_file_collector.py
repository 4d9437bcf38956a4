from grading.file_collector import (
    TRUNCATION_MARKER,
    collect_sources,
    match_files,
    sanitize_code,
    truncate,
)
from grading.types import JS_FILE_GLOBS


def test_sanitize_keeps_tabs_and_newlines():
    assert sanitize_code("a\x00b\tc\nd\x1be\x7f") == "ab\tc\nde"


def test_truncate_appends_marker_only_when_cut():
    assert truncate("short", 10) == "short"
    assert truncate("x" * 20, 10) == "x" * 10 + TRUNCATION_MARKER


def test_collect_sources_headers_and_truncation(tmp_path, write_files):
    write_files(tmp_path, {
        "server.js": "const app = express();",
        "routes/users.js": "y" * 50,
    })

    text = collect_sources(tmp_path, ["*.js", "routes/*.js"], max_chars=20)

    assert text.index("// server.js\n") < text.index("// routes/users.js\n")
    assert "y" * 20 + TRUNCATION_MARKER in text
    assert "y" * 21 not in text


def test_overlapping_patterns_include_file_once(tmp_path, write_files):
    write_files(tmp_path, {"src/app.js": "1", "src/util.js": "2"})

    matched = match_files(tmp_path, ["src/*.js", "src/app.js", "**/*.js"])

    assert [p.name for p in matched] == ["app.js", "util.js"]


def test_default_globs_skip_dependencies(tmp_path, write_files):
    write_files(tmp_path, {
        "app.js": "ok",
        "node_modules/lib/index.js": "vendored",
    })

    text = collect_sources(tmp_path, JS_FILE_GLOBS)

    assert "// app.js" in text
    assert "vendored" not in text


def test_invalid_utf8_bytes_are_replaced_not_dropped(tmp_path, write_files):
    write_files(tmp_path, {"main.c": "int main(void) { return 0; }"})
    (tmp_path / "util.c").write_bytes(
        b"/* auteur: Ren\xe9 */\nint add(int a, int b) { return a + b; }\n"
    )

    text = collect_sources(tmp_path, ["*.c"])

    assert "// main.c" in text
    assert "// util.c" in text
    assert "Ren\ufffd" in text
    assert "int add(int a, int b)" in text


def test_symlinks_outside_project_are_ignored(tmp_path, write_files):
    project = tmp_path / "project"
    write_files(tmp_path, {"secret.txt": "password", "project/a.txt": "a"})
    (project / "leak.txt").symlink_to(tmp_path / "secret.txt")

    matched = match_files(project, ["*.txt"])

    assert [p.name for p in matched] == ["a.txt"]


def test_no_matches_gives_empty_text(tmp_path):
    assert collect_sources(tmp_path, ["*.py"]) == ""
