"""HTML assembly for ``<img>``/``<picture>`` and the lazy-load fade-in snippet."""

import html
from collections.abc import Mapping
from typing import Any

LAZYLOAD_STYLE = """<style>
    img.lazyload {
        color: transparent;
    }
    img.lazyload.loaded {
        animation: lazyFadeIn 0.5s ease-in-out;
    }
    @keyframes lazyFadeIn {
        from {
            opacity: 0;
        }
        to {
            opacity: 1;
        }
    }
</style>"""

LAZYLOAD_SCRIPT = """<script>
    document.addEventListener("DOMContentLoaded", function () {
        const lazyloadImages = document.querySelectorAll("img.lazyload");
        lazyloadImages.forEach((img) => {
            if (img.complete) {
                img.classList.add("loaded");
            } else {
                img.addEventListener("load", () => img.classList.add("loaded"));
            }
        });
    });
</script>"""


def html_attrs(attributes: Mapping[str, Any]) -> str:
    """Serialize attributes; None/False/empty are skipped and True renders bare."""
    parts: list[str] = []
    for key, value in attributes.items():
        if value is None or value is False:
            continue
        if isinstance(value, (str, list, tuple)) and not value:
            continue
        if value is True:
            parts.append(key)
            continue

        if isinstance(value, (list, tuple)):
            text = " ".join(html.escape(str(v), quote=True) for v in value)
        else:
            text = html.escape(str(value), quote=True)
        parts.append(f'{key}="{text}"')
    return " ".join(parts)


def render_markup(attrs: Mapping[str, Any]) -> str:
    """``<img>``, or ``<picture>`` when alternate-format sources are present."""
    img_attrs = dict(attrs)
    sources = img_attrs.pop("sources", None) or []
    if not sources:
        return f"<img {html_attrs(img_attrs)}>"

    sizes = img_attrs.get("sizes", "")
    source_html = "".join(
        "<source "
        + html_attrs({"srcset": source["srcset"], "sizes": sizes, "type": source["type"]})
        + ">"
        for source in sources
    )
    img_attrs.pop("srcset", None)
    img_attrs.pop("sizes", None)
    return f"<picture>{source_html}<img {html_attrs(img_attrs)}></picture>"


def lazyload_snippet() -> str:
    return LAZYLOAD_STYLE + LAZYLOAD_SCRIPT


def inject_lazyload(document: str) -> str:
    """Insert the fade-in style and script before ``</head>``; no-op without a head."""
    return document.replace("</head>", lazyload_snippet() + "</head>", 1)
