import sys
from pathlib import Path

import pytest

from conftest import CopyEngine, TruncatingEngine
from sitepack.bundlers import (
    CommandBundleEngine,
    ImportInliningEngine,
    build_script_bundle,
    build_style_bundle,
    bundle_to,
    engines_from_settings,
)
from sitepack.config import BundlersConfig
from sitepack.errors import BundleError

COPY_SCRIPT = "import shutil, sys; shutil.copyfile(sys.argv[1], sys.argv[2])"
FAIL_SCRIPT = "import sys; sys.stderr.write('Error: Could not resolve ./missing.js'); sys.exit(2)"
BINARY_FAIL_SCRIPT = "import sys; sys.stderr.buffer.write(b'bad byte \\xff in input'); sys.exit(3)"


def test_script_bundle_named_after_artifact(project_dir: Path, tmp_path: Path):
    target_dir = tmp_path / "target"
    target_dir.mkdir()
    engine = CopyEngine()

    output = build_script_bundle(engine, project_dir / "src/main.js", target_dir, "quiz")

    assert output == target_dir / "quiz.js"
    assert output.read_text(encoding="utf-8").startswith("/* bundled */")
    assert [p.name for p in target_dir.iterdir()] == ["quiz.js"]


def test_style_bundle_named_after_artifact(project_dir: Path, tmp_path: Path):
    target_dir = tmp_path / "target"
    target_dir.mkdir()

    output = build_style_bundle(CopyEngine(), project_dir / "src/css/main.css", target_dir, "quiz")

    assert output == target_dir / "quiz.css"


def test_failed_engine_leaves_no_partial_output(project_dir: Path, tmp_path: Path):
    target_dir = tmp_path / "target"
    target_dir.mkdir()

    with pytest.raises(BundleError, match="SyntaxError"):
        build_script_bundle(TruncatingEngine(), project_dir / "src/main.js", target_dir, "quiz")

    assert list(target_dir.iterdir()) == []


def test_missing_entry_is_bundle_error(tmp_path: Path):
    with pytest.raises(BundleError, match="entry file not found"):
        bundle_to(CopyEngine(), tmp_path / "absent.js", tmp_path / "out.js")


def test_command_engine_runs_external_process(project_dir: Path, tmp_path: Path):
    engine = CommandBundleEngine(command=(sys.executable, "-c", COPY_SCRIPT, "{entry}", "{output}"))
    output = tmp_path / "quiz.js"

    bundle_to(engine, project_dir / "src/main.js", output)

    assert output.read_text(encoding="utf-8") == (project_dir / "src/main.js").read_text(encoding="utf-8")


def test_command_engine_failure_carries_diagnostic(project_dir: Path, tmp_path: Path):
    engine = CommandBundleEngine(command=(sys.executable, "-c", FAIL_SCRIPT, "{entry}", "{output}"))

    with pytest.raises(BundleError, match="Could not resolve ./missing.js"):
        bundle_to(engine, project_dir / "src/main.js", tmp_path / "quiz.js")

    assert not (tmp_path / "quiz.js").exists()


def test_command_engine_missing_executable(project_dir: Path, tmp_path: Path):
    engine = CommandBundleEngine(command=("sitepack-no-such-bundler", "{entry}", "{output}"))

    with pytest.raises(BundleError, match="not found"):
        bundle_to(engine, project_dir / "src/main.js", tmp_path / "quiz.js")


def test_command_engine_undecodable_diagnostic(project_dir: Path, tmp_path: Path):
    engine = CommandBundleEngine(command=(sys.executable, "-c", BINARY_FAIL_SCRIPT, "{entry}", "{output}"))

    with pytest.raises(BundleError, match="bad byte"):
        bundle_to(engine, project_dir / "src/main.js", tmp_path / "quiz.js")


def test_command_template_rendering():
    engine = CommandBundleEngine(command=("rollup", "{entry}", "--file", "{output}"))

    assert engine.render_command(Path("/src/main.js"), Path("/t/app.js")) == [
        "rollup",
        "/src/main.js",
        "--file",
        "/t/app.js",
    ]


def test_inline_engine_flattens_imports(tmp_path: Path):
    css = tmp_path / "css"
    (css / "theme").mkdir(parents=True)
    (css / "base.css").write_text("body { margin: 0; }\n", encoding="utf-8")
    (css / "theme/colors.css").write_text('@import "../base.css";\n:root { --accent: teal; }\n', encoding="utf-8")
    (css / "main.css").write_text(
        '@import url("https://fonts.example.com/a.css");\n'
        '@import "base.css";\n'
        "@import url(theme/colors.css) screen;\n"
        "h1 { color: var(--accent); }\n",
        encoding="utf-8",
    )

    flattened = ImportInliningEngine().flatten(css / "main.css")

    assert '@import url("https://fonts.example.com/a.css");' in flattened
    assert flattened.count("body { margin: 0; }") == 1
    assert "@media screen {" in flattened
    assert ":root { --accent: teal; }" in flattened
    assert flattened.index("body { margin: 0; }") < flattened.index("h1 {")


def test_inline_engine_tolerates_cycles(tmp_path: Path):
    (tmp_path / "a.css").write_text('@import "b.css";\na { color: red; }\n', encoding="utf-8")
    (tmp_path / "b.css").write_text('@import "a.css";\nb { color: blue; }\n', encoding="utf-8")

    flattened = ImportInliningEngine().flatten(tmp_path / "a.css")

    assert flattened.count("a { color: red; }") == 1
    assert flattened.count("b { color: blue; }") == 1


def test_inline_engine_unresolved_import(tmp_path: Path):
    (tmp_path / "main.css").write_text('@import "gone.css";\n', encoding="utf-8")
    target = tmp_path / "out.css"

    with pytest.raises(BundleError, match="gone.css"):
        bundle_to(ImportInliningEngine(), tmp_path / "main.css", target)

    assert not target.exists()


def test_inline_engine_undecodable_stylesheet(tmp_path: Path):
    (tmp_path / "main.css").write_text('@import "latin1.css";\n', encoding="utf-8")
    (tmp_path / "latin1.css").write_bytes(b"/* caf\xe9 */\n")
    target = tmp_path / "out.css"

    with pytest.raises(BundleError, match="latin1.css"):
        bundle_to(ImportInliningEngine(), tmp_path / "main.css", target)

    assert not target.exists()


def test_engines_from_settings(tmp_path: Path):
    script_engine, style_engine = engines_from_settings(BundlersConfig(style_engine="inline"), tmp_path)

    assert isinstance(script_engine, CommandBundleEngine)
    assert script_engine.cwd == tmp_path
    assert isinstance(style_engine, ImportInliningEngine)

    _, command_style = engines_from_settings(BundlersConfig(), tmp_path)
    assert isinstance(command_style, CommandBundleEngine)
    assert "postcss-import" in command_style.command
