from __future__ import annotations

import json
from pathlib import Path

import pytest

from sitepack.config import BuildInputs
from sitepack.errors import BundleError

TEMPLATE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>%%NAME%%</title>
<meta name="description" content="%%DESCRIPTION%%">
<meta name="apple-mobile-web-app-title" content="%%SHORT_NAME%%">
<link rel="stylesheet" href="src/css/main.css">
<script id="phone-debug-pre" type="text/x-disabled">window.debugPre = true;</script>
</head>
<body>
<h1>%%NAME%%</h1>
<p class="short">%%SHORT_NAME%%</p>
<script id="main" type="module" src="src/main.js"></script>
<script id="phone-debug-post" type="text/x-disabled">window.debugPost = true;</script>
<script id="service-worker" type="text/x-disabled">navigator.serviceWorker.register("sw.js");</script>
</body>
</html>
"""

SERVICE_WORKER_TEMPLATE = """const VERSION = "%%VERSION%%";
const FILES = "%%FILES%%";
const ARTIFACT = "%%ARTIFACT_NAME%%";
self.addEventListener("install", () => caches.open(ARTIFACT + VERSION));
"""

ICON_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + bytes(range(64))

PROJECT_DESCRIPTOR = {
    "name": "quiz-night",
    "version": "1.2.3",
    "brand": {
        "name": "Quiz Night",
        "shortName": "Quiz",
        "description": "Trivia for the whole pub",
    },
    "build": {"artifactName": "quiz"},
}


class CopyEngine:
    """Writes the entry file, prefixed with a marker, to the output path."""

    def __init__(self, marker: str = "/* bundled */") -> None:
        self.marker = marker
        self.calls: list[tuple[Path, Path]] = []

    def bundle(self, entry: Path, output: Path) -> None:
        self.calls.append((entry, output))
        output.write_text(f"{self.marker}\n{entry.read_text(encoding='utf-8')}", encoding="utf-8")


class TruncatingEngine:
    """Writes a partial result and then fails like a real engine would."""

    def bundle(self, entry: Path, output: Path) -> None:
        output.write_text("(function(){", encoding="utf-8")
        raise BundleError(f"SyntaxError: Unexpected token in {entry.name}")


def write_project(root: Path, descriptor: dict | None = None, template: str = TEMPLATE_HTML) -> Path:
    (root / "src/css").mkdir(parents=True, exist_ok=True)
    (root / "package.json").write_text(json.dumps(descriptor or PROJECT_DESCRIPTOR), encoding="utf-8")
    (root / "index.html").write_text(template, encoding="utf-8")
    (root / "src/main.js").write_text("export default function main(body) { body.dataset.ready = '1'; }\n", encoding="utf-8")
    (root / "src/css/base.css").write_text("body { margin: 0; }\n", encoding="utf-8")
    (root / "src/css/main.css").write_text('@import "base.css";\nh1 { color: teal; }\n', encoding="utf-8")
    (root / "src/service-worker.template.js").write_text(SERVICE_WORKER_TEMPLATE, encoding="utf-8")
    (root / "icon.png").write_bytes(ICON_BYTES)
    return root


def make_inputs(root: Path) -> BuildInputs:
    root = root.resolve()
    return BuildInputs(
        project_root=root,
        manifest_file=root / "package.json",
        html_template=root / "index.html",
        script_entry=root / "src/main.js",
        style_entry=root / "src/css/main.css",
        service_worker_template=root / "src/service-worker.template.js",
        icon_file=root / "icon.png",
        target_dir=root / "target",
    )


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    return write_project(tmp_path / "project")


@pytest.fixture
def build_inputs(project_dir: Path) -> BuildInputs:
    return make_inputs(project_dir)
