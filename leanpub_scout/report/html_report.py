# File: leanpub_scout/report/html_report.py
"""leanpub_scout.report.html_report: HTML report rendered with Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from jinja2 import BaseLoader, Environment, FileSystemLoader, PackageLoader, select_autoescape

from leanpub_scout.aggregator import Report

TEMPLATE_NAME = "report.html.j2"


def render_html(
    report: Report,
    template_dir: Optional[Union[Path, str]],
    output_path: Union[Path, str],
) -> Path:
    """Render the HTML report and save it at *output_path*.

    Args:
        report: Report produced by a run.
        template_dir: directory holding ``report.html.j2``; None uses the
            template shipped with the package.
        output_path: path of the resulting HTML file.

    Returns:
        Path of the saved HTML file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    loader: BaseLoader
    if template_dir is None:
        loader = PackageLoader("leanpub_scout", "report/templates")
    else:
        loader = FileSystemLoader(str(template_dir))
    env = Environment(loader=loader, autoescape=select_autoescape(["html", "xml", "j2"]))
    template = env.get_template(TEMPLATE_NAME)

    context: dict[str, Any] = {
        "books": report.books,
        "listing_errors": report.listing_errors,
        "complete": report.complete,
        "failures": len(report.failures),
    }

    output_path.write_text(template.render(**context), encoding="utf-8")
    return output_path
