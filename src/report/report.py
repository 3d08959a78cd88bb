# report.py
"""
Report writer.
- HTML: one self-contained file, figures embedded as base64 PNG, tables via DataFrame.to_html.
- PDF: one page per figure (matplotlib PdfPages).
"""

import base64
import html
import io
import os
from dataclasses import dataclass, field
from datetime import datetime

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages

REPORT_FORMATS = ("html", "pdf")

_CSS = """
body { font-family: Helvetica, Arial, sans-serif; margin: 2em auto; max-width: 1100px; color: #2c3e50; }
h1 { border-bottom: 2px solid #2c3e50; }
h2 { margin-top: 2em; border-bottom: 1px solid #ccc; }
img { max-width: 100%; margin: 0.5em 0; }
table { border-collapse: collapse; font-size: 0.85em; margin: 0.5em 0; }
th, td { border: 1px solid #ddd; padding: 3px 8px; text-align: right; }
th { background: #f4f6f7; }
"""


@dataclass
class ReportSection:
    title: str
    figures: list = field(default_factory=list)   # [(caption, Figure)]
    tables: list = field(default_factory=list)    # [(caption, DataFrame)]
    text: str = ""


def _fig_to_base64(fig) -> str:
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=110, bbox_inches="tight")
    return base64.b64encode(buf.getvalue()).decode("ascii")


def render_html(sections, title: str) -> str:
    parts = [
        "<!DOCTYPE html>",
        "<html><head><meta charset='utf-8'>",
        f"<title>{html.escape(title)}</title><style>{_CSS}</style></head><body>",
        f"<h1>{html.escape(title)}</h1>",
        f"<p><em>Generated {datetime.now().strftime('%Y-%m-%d %H:%M')}</em></p>",
    ]
    for sec in sections:
        parts.append(f"<h2>{html.escape(sec.title)}</h2>")
        if sec.text:
            parts.append(f"<p>{html.escape(sec.text)}</p>")
        for caption, table in sec.tables:
            parts.append(f"<h4>{html.escape(caption)}</h4>")
            parts.append(table.to_html(index=False, float_format=lambda v: f"{v:.4f}", border=0))
        for caption, fig in sec.figures:
            parts.append(f"<figure><img alt='{html.escape(caption)}' "
                         f"src='data:image/png;base64,{_fig_to_base64(fig)}'/>"
                         f"<figcaption>{html.escape(caption)}</figcaption></figure>")
    parts.append("</body></html>")
    return "\n".join(parts)


def write_pdf(sections, path: str, title: str) -> str:
    with PdfPages(path) as pdf:
        cover = plt.figure(figsize=(8.27, 11.69))
        cover.text(0.5, 0.6, title, ha="center", va="center", fontsize=18)
        cover.text(0.5, 0.55, datetime.now().strftime("%Y-%m-%d %H:%M"), ha="center", fontsize=10)
        pdf.savefig(cover)
        plt.close(cover)
        for sec in sections:
            for caption, fig in sec.figures:
                fig.suptitle(f"{sec.title}: {caption}", fontsize=9, y=1.0)
                pdf.savefig(fig, bbox_inches="tight")
        info = pdf.infodict()
        info["Title"] = title
    return path


def build_report(sections, out_dir: str, title: str = "Report", formats=REPORT_FORMATS,
                 basename: str = "report") -> list:
    """
    Write the report in every requested format and close all figures.
    Returns the written paths.
    """
    unknown = [f for f in formats if f not in REPORT_FORMATS]
    if unknown:
        raise ValueError(f"Unknown report format(s): {unknown}; expected {REPORT_FORMATS}")
    os.makedirs(out_dir, exist_ok=True)

    written = []
    try:
        if "html" in formats:
            path = os.path.join(out_dir, f"{basename}.html")
            with open(path, "w", encoding="utf-8") as f:
                f.write(render_html(sections, title))
            written.append(path)
        if "pdf" in formats:
            written.append(write_pdf(sections, os.path.join(out_dir, f"{basename}.pdf"), title))
    finally:
        for sec in sections:
            for _, fig in sec.figures:
                plt.close(fig)
    return written
