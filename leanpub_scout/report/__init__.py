# File: leanpub_scout/report/__init__.py
"""leanpub_scout.report: JSON and HTML writers used by the CLI."""

from leanpub_scout.report.html_report import render_html
from leanpub_scout.report.json_report import render_json

__all__ = ["render_json", "render_html"]
