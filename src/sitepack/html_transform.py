"""Rewrite the HTML template into the deployable index.html."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from bs4 import BeautifulSoup, Tag

from sitepack.config import BuildConfiguration
from sitepack.errors import TemplateError
from sitepack.manifest import Brand
from sitepack.offline import (
    APPCACHE_MANIFEST_FILE,
    INDEX_FILE,
    WEB_MANIFEST_FILE,
    script_file_name,
    style_file_name,
)
from sitepack.utils.paths import write_text_atomically

LOGGER = logging.getLogger(__name__)

HTML_PARSER = "html.parser"
EXECUTABLE_SCRIPT_TYPE = "text/javascript"
ENTRY_POINT_CALL = "main(document.body);"

STYLESHEET_SELECTOR = 'link[rel~="stylesheet"]'
MAIN_SCRIPT_SELECTOR = "script#main"


@dataclass(frozen=True, slots=True)
class ConditionalScript:
    """A tagged script block kept and enabled only while its flag is set."""

    node_id: str
    flag: Literal["debug", "offline"]

    @property
    def selector(self) -> str:
        return f"script#{self.node_id}"

    def enabled(self, config: BuildConfiguration) -> bool:
        return bool(getattr(config, self.flag))


CONDITIONAL_SCRIPTS: tuple[ConditionalScript, ...] = (
    ConditionalScript("phone-debug-pre", "debug"),
    ConditionalScript("phone-debug-post", "debug"),
    ConditionalScript("service-worker", "offline"),
)


def placeholder_values(brand: Brand) -> dict[str, str]:
    """Map each template token to its brand value."""

    return {
        "%%NAME%%": brand.name,
        "%%SHORT_NAME%%": brand.short_name,
        "%%DESCRIPTION%%": brand.description,
    }


def substitute_placeholders(text: str, brand: Brand) -> str:
    """Replace every placeholder token with its brand value, verbatim and case-sensitively."""

    for token, value in placeholder_values(brand).items():
        text = text.replace(token, value)
    return text


def _require_one(soup: BeautifulSoup, selector: str) -> Tag:
    node = soup.select_one(selector)
    if node is None:
        raise TemplateError(f"HTML template is missing required node `{selector}`.")
    return node


def _require_tag(soup: BeautifulSoup, name: str) -> Tag:
    node = soup.find(name)
    if not isinstance(node, Tag):
        raise TemplateError(f"HTML template is missing required <{name}> element.")
    return node


def _script_tag(soup: BeautifulSoup, *, src: str | None = None, body: str | None = None) -> Tag:
    attrs = {"type": EXECUTABLE_SCRIPT_TYPE}
    if src is not None:
        attrs["src"] = src
    tag = soup.new_tag("script", attrs=attrs)
    if body is not None:
        tag.string = body
    return tag


def remove_or_enable(node: Tag, enable: bool) -> None:
    """Mark `node` executable when enabled, otherwise delete it from the tree."""

    if enable:
        node["type"] = EXECUTABLE_SCRIPT_TYPE
    else:
        node.decompose()


def transform_template(
    template_text: str,
    brand: Brand,
    artifact_name: str,
    config: BuildConfiguration,
) -> str:
    """Return the serialized index.html for one build.

    Every required node is located before any mutation so that a malformed
    template raises `TemplateError` without partial work. Brand values are
    substituted into the serialized text so the serializer never escapes them.
    """

    soup = BeautifulSoup(template_text, HTML_PARSER)

    stylesheets = soup.select(STYLESHEET_SELECTOR)
    if not stylesheets:
        raise TemplateError(f"HTML template is missing required node `{STYLESHEET_SELECTOR}`.")
    main_script = _require_one(soup, MAIN_SCRIPT_SELECTOR)
    conditional_nodes = [(block, _require_one(soup, block.selector)) for block in CONDITIONAL_SCRIPTS]
    html_node: Tag | None = None
    head_node: Tag | None = None
    if config.offline:
        html_node = _require_tag(soup, "html")
        head_node = _require_tag(soup, "head")

    for link in stylesheets:
        link["href"] = style_file_name(artifact_name)

    bundle_script = _script_tag(soup, src=script_file_name(artifact_name))
    entry_script = _script_tag(soup, body=ENTRY_POINT_CALL)
    main_script.replace_with(bundle_script)
    bundle_script.insert_after(entry_script)

    for block, node in conditional_nodes:
        remove_or_enable(node, block.enabled(config))

    if html_node is not None and head_node is not None:
        html_node["manifest"] = APPCACHE_MANIFEST_FILE
        head_node.append(soup.new_tag("link", attrs={"rel": "manifest", "href": WEB_MANIFEST_FILE}))

    return substitute_placeholders(soup.decode(), brand)


def build_html(
    template_path: Path,
    target_dir: Path,
    brand: Brand,
    artifact_name: str,
    config: BuildConfiguration,
    logger: logging.Logger | None = None,
) -> Path:
    """Transform the template at `template_path` and write index.html into `target_dir`."""

    effective_logger = logger or LOGGER
    try:
        template_text = template_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise TemplateError(f"Cannot read HTML template {template_path}: {exc}") from exc

    html = transform_template(template_text, brand, artifact_name, config)
    output_path = write_text_atomically(html, target_dir / INDEX_FILE)
    effective_logger.info(
        "html.write path=%s debug=%s offline=%s",
        output_path,
        config.debug,
        config.offline,
    )
    return output_path
