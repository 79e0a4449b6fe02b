from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Any, Dict

from jinja2 import Template

logger = logging.getLogger(__name__)


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>somindel report</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>somindel report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Run summary</h2>
<div class="grid">
  <div class="card">
    <h3>Inputs</h3>
    <table>
      <tr><th>Candidates</th><td><code>{{ run.calls_path }}</code></td></tr>
      <tr><th>Window sets</th><td><code>{{ run.windows_path }}</code></td></tr>
      <tr><th>Chromosome</th><td><code>{{ run.chrom }}</code></td></tr>
    </table>
  </div>
  <div class="card">
    <h3>Filters</h3>
    <table>
      <tr><th>Scoring mode</th><td>{{ run.scoring_mode }}</td></tr>
      <tr><th>Scoring model loaded</th><td>{{ run.scoring_model }}</td></tr>
      <tr><th>Max normal depth</th><td>{{ run.max_depth if run.max_depth is not none else "disabled" }}</td></tr>
      <tr><th>Max window filtered fraction</th><td>{{ run.indel_max_window_filtered_basecall_frac }}</td></tr>
      <tr><th>QSI_NT lower bound</th><td>{{ run.sindel_quality_lower_bound }}</td></tr>
    </table>
  </div>
</div>

<h2>Records</h2>
<table>
  <tr><th>Candidates</th><td>{{ counts.candidates }}</td></tr>
  <tr><th>Window positions</th><td>{{ counts.window_positions }}</td></tr>
  <tr><th>Records written</th><td>{{ counts.records_written }}</td></tr>
  <tr><th>PASS</th><td>{{ counts.records_pass }}</td></tr>
  <tr><th>Failed</th><td>{{ counts.records_failed }}</td></tr>
  <tr><th>Unresolved positions</th><td>{{ counts.positions_unresolved }}</td></tr>
  {% for name, n in filter_counts.items() %}
  <tr><th>{{ name }}</th><td>{{ n }}</td></tr>
  {% endfor %}
</table>

<h2>Plots</h2>
<div class="grid">
  <div class="card">
    <h3>Filters</h3>
    <img src="{{ plots.filter_counts }}" alt="filter counts">
  </div>
  <div class="card">
    <h3>Tumor AF</h3>
    <img src="{{ plots.af_hist }}" alt="tumor AF histogram">
  </div>
</div>

<h2>Outputs</h2>
<ul>
  <li><code>{{ run.vcf_path }}</code> (somatic indel VCF)</li>
  <li><code>summary.json</code> (machine-readable summary)</li>
</ul>

<hr>
<p class="small">somindel {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    outdir: str | Path,
    version: str,
    run: Dict[str, Any],
    plots: Dict[str, str],
) -> Path:
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        run=run,
        counts=run.get("counts", {}),
        filter_counts=run.get("filter_counts", {}),
        plots=plots,
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    return out_path
