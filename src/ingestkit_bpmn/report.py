"""Markdown rendering for analysis and TWX inventory reports.

The output is deterministic (no timestamps) so re-running on an unchanged
source produces byte-identical files.
"""

from __future__ import annotations

from ingestkit_bpmn.models import AnalysisReport, CatalogEntry, TWXInventory

_LIST_LIMIT = 10
_BINDING_LIMIT = 20
_ELEMENT_TYPE_LIMIT = 20


def _label(entry: CatalogEntry) -> str:
    return entry.name or entry.id or entry.tag


def _numbered(entries: list[CatalogEntry], detail, empty: str, limit: int | None = _LIST_LIMIT) -> str:
    if not entries:
        return f"_{empty}_"
    shown = entries if limit is None else entries[:limit]
    lines = [f"{i}. **{_label(e)}** ({detail(e)})" for i, e in enumerate(shown, start=1)]
    if limit is not None and len(entries) > limit:
        lines.append("")
        lines.append(f"... and {len(entries) - limit} more")
    return "\n".join(lines)


def render_analysis_markdown(report: AnalysisReport, file_name: str) -> str:
    """Render *report* as a human-readable Markdown document."""
    summary = report.summary
    complexity = report.complexity
    factors = complexity.factors

    out: list[str] = [
        f"# BPMN Analysis Report: {file_name}",
        "",
        "## Summary",
        "",
        "| Metric | Count |",
        "|--------|-------|",
        f"| Coach Views | {summary.total_coach_views} |",
        f"| Human Services | {summary.total_human_services} |",
        f"| BPD Processes | {summary.total_bpd_processes} |",
        f"| Service Tasks | {summary.total_service_tasks} |",
        f"| Data Bindings | {summary.unique_data_bindings} |",
        f"| Max Nesting Depth | {summary.max_nesting_depth} |",
        f"| Total Elements | {summary.total_elements} |",
        "",
        "## Complexity Analysis",
        "",
        f"**Complexity Score:** {complexity.score:g}",
        "",
        f"**Recommendation:** {complexity.recommendation}",
        "",
        "### Complexity Factors",
        f"- Component Count: {factors.component_count}",
        f"- Nesting Depth: {factors.max_depth}",
        f"- Data Binding Complexity: {factors.binding_count}",
        f"- Service Task Count: {factors.task_count}",
        "",
        "## Coach Views",
        "",
        _numbered(
            report.coach_views,
            lambda e: f"Type: {e.type or 'N/A'}, Nesting: {e.nesting_level}",
            "No coach views found",
        ),
        "",
        "## Human Services",
        "",
        _numbered(
            report.human_services,
            lambda e: f"Nesting: {e.nesting_level}",
            "No human services found",
        ),
        "",
        "## BPD Processes",
        "",
        _numbered(
            report.bpd_processes,
            lambda e: f"Executable: {e.is_executable or 'N/A'}",
            "No BPD processes found",
            limit=None,
        ),
        "",
        "## Service Tasks",
        "",
        _numbered(
            report.service_tasks,
            lambda e: f"Implementation: {e.implementation or 'N/A'}",
            "No service tasks found",
        ),
        "",
        "## Data Bindings (Sample)",
        "",
    ]

    if report.data_bindings:
        out.append("```")
        out.extend(report.data_bindings[:_BINDING_LIMIT])
        out.append("```")
        if len(report.data_bindings) > _BINDING_LIMIT:
            out.append("")
            out.append(f"... and {len(report.data_bindings) - _BINDING_LIMIT} more")
    else:
        out.append("_No data bindings found_")

    if report.duplicate_ids:
        out.extend(["", "## Duplicate Identifiers", "", "| ID | Occurrences |", "|----|-------------|"])
        out.extend(f"| {k} | {v} |" for k, v in report.duplicate_ids.items())

    out.extend(
        [
            "",
            "## Element Type Distribution",
            "",
            "| Element Type | Count |",
            "|--------------|-------|",
        ]
    )
    ranked = sorted(summary.element_type_counts.items(), key=lambda kv: (-kv[1], kv[0]))
    out.extend(f"| {name} | {count} |" for name, count in ranked[:_ELEMENT_TYPE_LIMIT])

    if report.truncated:
        out.extend(["", "> Scan stopped at the element limit; counts are partial."])

    if report.errors:
        out.extend(["", "## Errors", ""])
        out.extend(f"- `{e.code}` {e.message}" for e in report.errors)

    out.append("")
    return "\n".join(out)


def _title(category: str) -> str:
    return " ".join(word.capitalize() for word in category.split("-"))


def render_twx_markdown(inventory: TWXInventory) -> str:
    """Render a TWX inventory as Markdown."""
    stats = inventory.statistics
    out: list[str] = [
        "# TWX Inventory Report",
        "",
        "## Summary",
        "",
        "| Category | Count |",
        "|----------|-------|",
        f"| **Total Files** | **{stats.total_files}** |",
    ]
    for category, entries in inventory.categories.items():
        pattern = entries[0].pattern if entries else ""
        suffix = f" ({pattern}.*)" if pattern.isdigit() else ""
        out.append(f"| {_title(category)}{suffix} | {len(entries)} |")

    out.extend(
        [
            "",
            "### By Size",
            "",
            "| Bucket | Count |",
            "|--------|-------|",
        ]
    )
    out.extend(f"| {bucket} | {count} |" for bucket, count in stats.by_size.items())
    if stats.largest_file:
        out.extend(["", f"**Largest file:** {stats.largest_file} ({stats.largest_file_size} bytes)"])

    for category, entries in inventory.categories.items():
        out.extend(["", f"## {_title(category)}", ""])
        for entry in entries[:_LIST_LIMIT]:
            meta = entry.metadata
            out.append(f"### {meta.name or entry.filename}")
            out.append("")
            out.append(f"- **File:** {entry.filename}")
            out.append(f"- **Pattern:** {entry.pattern}")
            out.append(f"- **Priority:** {entry.priority}")
            out.append(f"- **Type:** {meta.type or 'Unknown'}")
            out.append(f"- **ID:** {meta.id or 'N/A'}")
            if meta.description:
                out.append(f"- **Description:** {meta.description}")
            if entry.complexity is not None:
                out.append(f"- **Complexity:** {entry.complexity.score:g} ({entry.complexity.tier.value})")
            out.append("")
        if len(entries) > _LIST_LIMIT:
            out.append(f"_... and {len(entries) - _LIST_LIMIT} more_")
            out.append("")

    if inventory.errors:
        out.extend(["## Errors", ""])
        out.extend(f"- `{e.code}` {e.message}" for e in inventory.errors)
        out.append("")

    return "\n".join(out).rstrip("\n") + "\n"
