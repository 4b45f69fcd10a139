import os
from pathlib import Path
from typing import Any, Dict, List

from jinja2 import Environment, FileSystemLoader

from .consistency import RepairReport

# Resolve template directory relative to this file
TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), autoescape=True)
text_env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), autoescape=False)

EMAIL_THEME = os.getenv("EMAIL_THEME", "dark").strip().lower()
if EMAIL_THEME not in ("light", "dark"):
    EMAIL_THEME = "dark"

THEMES = {
    "light": {
        "page_bg": "#f5f5f5",
        "card_bg": "#ffffff",
        "card_border": "#e0e0e0",
        "text_primary": "#202124",
        "text_secondary": "#555",
        "text_muted": "#999",
        "error": "#c62828",
        "ok": "#2e7d32",
        "warning": "#b26a00",
    },
    "dark": {
        "page_bg": "#121212",
        "card_bg": "#1E1E1E",
        "card_border": "#333333",
        "text_primary": "#F1F1F1",
        "text_secondary": "#BBBBBB",
        "text_muted": "#777777",
        "error": "#FF6B6B",
        "ok": "#4CAF50",
        "warning": "#FFB74D",
    },
}


def build_subject(report: RepairReport, store_label: str) -> str:
    if report.errors:
        status = f"{len(report.errors)} errors"
    elif report.has_changes:
        status = "repairs applied" if not report.dry_run else "repairs needed"
    else:
        status = "no drift"
    return f"[Catalog Repair] {store_label}: {status}"


def _summary_lines(report: RepairReport) -> List[str]:
    return [
        f"{report.batches_scanned} batches scanned · {report.items_indexed} items indexed",
        f"{len(report.aggregates_corrected)} aggregates corrected · "
        f"{len(report.items_normalized)} item records normalized",
        f"{report.entries_written} index entries written · {report.entries_removed} removed",
    ]


def _context(report: RepairReport, store_label: str) -> Dict[str, Any]:
    return {
        "store_label": store_label,
        "summary_lines": _summary_lines(report),
        "aggregates_corrected": report.aggregates_corrected,
        "items_normalized": report.items_normalized,
        "duplicates": report.duplicates,
        "flash_sale_cleared": report.flash_sale_cleared,
        "errors": report.errors,
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "finished_at": report.finished_at,
    }


def build_plaintext_report(report: RepairReport, store_label: str) -> str:
    template = text_env.get_template("repair_text.txt")
    return template.render(**_context(report, store_label))


def build_html_report(report: RepairReport, store_label: str, theme: str | None = None) -> str:
    theme = theme if theme in THEMES else EMAIL_THEME
    template = env.get_template("repair_email.html")
    ctx = _context(report, store_label)
    ctx["title"] = build_subject(report, store_label)
    ctx["colors"] = THEMES[theme]
    return template.render(**ctx)
