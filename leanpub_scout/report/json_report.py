# leanpub_scout/report/json_report.py

"""
JSON report for LeanpubScout.

Serialises a Report into a file.
"""
import json
from pathlib import Path

from leanpub_scout.aggregator import Report


def render_json(report: Report, output_path: Path | str, *, pretty: bool = True) -> Path:
    """
    Save *report* as JSON at *output_path*.

    :param report: Report produced by a run
    :param output_path: path to the JSON file
    :param pretty: indent the output by 2 spaces
    :return: Path of the saved file

    Example:
    ```python
    from leanpub_scout.report.json_report import render_json
    report_path = render_json(report, 'reports/books.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(report.to_dict(), f, ensure_ascii=False, indent=2 if pretty else None)

    return output
