"""Confluence storage-format rendering for a ContractRecord."""

from __future__ import annotations

from datetime import datetime, timezone
from html import escape

from contractflow.schemas.contracts import ContractRecord


def page_title(record: ContractRecord) -> str:
    if record.contract_number:
        return f"{record.contract_title} ({record.contract_number})"
    return record.contract_title


def render_page(record: ContractRecord, generated_at: datetime | None = None) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)
    sections: list[str] = ["<h1>Contract Summary</h1>"]

    # Basic information
    rows = [("Contract Title", record.contract_title)]
    if record.contract_number:
        rows.append(("Contract Number", record.contract_number))
    rows.append(("Effective Date", record.effective_date))
    if record.expiration_date:
        rows.append(("Expiration Date", record.expiration_date))
    value = record.contract_value
    if value and value.amount:
        rows.append(("Contract Value", f"{value.currency or ''} {value.amount:,.2f}".strip()))
    if record.governing_law:
        rows.append(("Governing Law", record.governing_law))

    sections.append("<h2>Basic Information</h2>")
    sections.append(_table(None, rows))

    sections.append("<h2>Parties</h2>")
    sections.append(_table(
        ("Name", "Role", "Address"),
        [(p.name, p.role.value, p.address or "N/A") for p in record.parties],
    ))

    if record.key_terms:
        sections.append("<h2>Key Terms</h2>")
        sections.append(_bullets(record.key_terms))

    if record.obligations:
        sections.append("<h2>Obligations</h2>")
        sections.append(_table(
            ("Party", "Obligation"),
            [(o.party, o.description) for o in record.obligations],
        ))

    if record.renewal_terms:
        sections.append("<h2>Renewal Terms</h2>")
        sections.append(f"<p>{escape(record.renewal_terms)}</p>")

    if record.termination_clauses:
        sections.append("<h2>Termination Clauses</h2>")
        sections.append(_bullets(record.termination_clauses))

    if record.special_provisions:
        sections.append("<h2>Special Provisions</h2>")
        sections.append(_bullets(record.special_provisions))

    sections.append("<hr/>")
    sections.append(
        "<p><em>This page was automatically generated from contract analysis on "
        f"{generated_at.isoformat()}</em></p>"
    )
    return "\n".join(sections)


def _table(header: tuple[str, ...] | None, rows: list[tuple[str, ...]]) -> str:
    lines = ["<table><tbody>"]
    if header:
        lines.append("<tr>" + "".join(f"<th>{escape(h)}</th>" for h in header) + "</tr>")
        for row in rows:
            lines.append("<tr>" + "".join(f"<td>{escape(c)}</td>" for c in row) + "</tr>")
    else:
        # key/value table: first cell is the label
        for label, cell in rows:
            lines.append(f"<tr><th>{escape(label)}</th><td>{escape(cell)}</td></tr>")
    lines.append("</tbody></table>")
    return "\n".join(lines)


def _bullets(items: list[str]) -> str:
    return "<ul>\n" + "\n".join(f"<li>{escape(i)}</li>" for i in items) + "\n</ul>"
