"""
Rubric exports: copyable plain text, a print/word-processor HTML page and
a CSV spreadsheet. A validated Rubric is the only input.
"""

from __future__ import annotations

import csv
import io
from html import escape
from typing import List

from .rubric_agent.rubric import Rubric, canonical_score
from .translations import translate

LEVEL_CLASSES = {
    "0-4": "lvl-insufficient",
    "5": "lvl-sufficient",
    "6": "lvl-good",
    "7-8": "lvl-notable",
    "9-10": "lvl-excellent",
}

PRINT_CSS = """
body { font-family: Arial, Helvetica, sans-serif; margin: 24px; color: #1e293b; }
h1 { font-size: 20px; margin-bottom: 16px; }
table { width: 100%; border-collapse: collapse; font-size: 12px; }
th, td { border: 1px solid #94a3b8; padding: 6px 8px; vertical-align: top; }
th { background: #f1f5f9; }
td.item { font-weight: bold; background: #f8fafc; }
.weight { font-weight: normal; color: #475569; display: block; margin-top: 4px; }
.lvl-insufficient { background: #ef4444; color: #fff; }
.lvl-sufficient { background: #f97316; color: #fff; }
.lvl-good { background: #facc15; color: #111827; }
.lvl-notable { background: #4ade80; color: #fff; }
.lvl-excellent { background: #84cc16; color: #fff; }
footer { margin-top: 24px; font-size: 11px; color: #64748b; text-align: center; }
@media print { body { margin: 0; } th { -webkit-print-color-adjust: exact; print-color-adjust: exact; } }
"""


def level_class(level: str, score: str = "") -> str:
    """CSS class for a scale header; custom levels fall back to the score."""
    key = canonical_score(level) or (score or "").strip()
    return LEVEL_CLASSES.get(key, "lvl-custom")


def to_plain_text(rubric: Rubric, language: str = "es") -> str:
    points = translate("points", language)
    lines: List[str] = [rubric.title, ""]
    for item in rubric.items:
        lines.append(f"{item.item_name} ({item.weight}%)")
        for d in item.descriptors:
            lines.append(f"  {d.level} ({d.score} {points}): {d.description}")
        lines.append("")

    if rubric.specific_criteria:
        lines.append(f"{translate('specific_criteria', language)}:")
        lines.extend(f"- {criterion}" for criterion in rubric.specific_criteria)

    return "\n".join(lines).rstrip() + "\n"


def to_print_html(rubric: Rubric, language: str = "es") -> str:
    headers = "".join(
        f'<th class="{level_class(h.level, h.score)}">'
        f"<div>{escape(h.level.upper())}</div><div>{escape(h.score)}</div></th>"
        for h in rubric.scale_headers
    )
    rows = "\n".join(
        "<tr>"
        f'<td class="item">{escape(item.item_name)}'
        f'<span class="weight">{item.weight}%</span></td>'
        + "".join(f"<td>{escape(d.description)}</td>" for d in item.descriptors)
        + "</tr>"
        for item in rubric.items
    )

    criteria_html = ""
    if rubric.specific_criteria:
        entries = "".join(f"<li>{escape(c)}</li>" for c in rubric.specific_criteria)
        criteria_html = (
            f"<h2>{escape(translate('specific_criteria', language))}</h2><ul>{entries}</ul>"
        )

    return (
        "<!DOCTYPE html>\n"
        f'<html lang="{escape(language)}"><head><meta charset="utf-8">'
        f"<title>{escape(rubric.title)}</title><style>{PRINT_CSS}</style></head>"
        f"<body><h1>{escape(rubric.title)}</h1>"
        f"<table><thead><tr><th>{escape(translate('evaluation_item', language))}</th>"
        f"{headers}</tr></thead><tbody>\n{rows}\n</tbody></table>"
        f"{criteria_html}"
        f"<footer>{escape(translate('footer', language))}</footer>"
        "</body></html>\n"
    )


def to_csv(rubric: Rubric, language: str = "es") -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(
        [translate("evaluation_item", language), f"{translate('weight', language)} (%)"]
        + [f"{h.level} ({h.score})" for h in rubric.scale_headers]
    )
    for item in rubric.items:
        writer.writerow(
            [item.item_name, item.weight] + [d.description for d in item.descriptors]
        )
    if rubric.specific_criteria:
        writer.writerow([])
        writer.writerow([translate("specific_criteria", language)])
        for criterion in rubric.specific_criteria:
            writer.writerow([criterion])
    return buf.getvalue()


EXPORTERS = {
    "text": (to_plain_text, "text/plain; charset=utf-8"),
    "html": (to_print_html, "text/html; charset=utf-8"),
    "csv": (to_csv, "text/csv; charset=utf-8"),
}
