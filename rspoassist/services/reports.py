from __future__ import annotations

from datetime import date, datetime
from html import escape
from typing import Any, Sequence

from rspoassist.domain.models import Invoice, NcDraft


_STATUS_COLORS = {"compliant": "#10b981", "non-compliant": "#ef4444", "pending": "#64748b"}

_BASE_STYLE = """
  @page { size: A4; margin: 1.5cm; }
  body { font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; color: #1e293b; line-height: 1.6; max-width: 21cm; margin: 0 auto; }
  .header { display: flex; justify-content: space-between; align-items: flex-start; border-bottom: 4px solid #064e3b; padding-bottom: 16px; margin-bottom: 24px; }
  .title { color: #064e3b; font-weight: 900; font-size: 24px; margin: 0; text-transform: uppercase; }
  .meta { font-size: 11px; font-weight: 600; color: #64748b; }
  .label { font-size: 10px; font-weight: 800; text-transform: uppercase; letter-spacing: 0.1em; color: #64748b; display: block; margin-bottom: 6px; }
  .section { margin-bottom: 20px; }
  .content { background: #f8fafc; padding: 14px; border-radius: 8px; border-left: 4px solid #94a3b8; font-size: 13px; white-space: pre-wrap; }
  .footer { margin-top: 32px; padding-top: 12px; border-top: 1px solid #e2e8f0; font-size: 9px; color: #94a3b8; }
"""

# Opening the export triggers the browser print dialog.
_PRINT_SCRIPT = "<script>window.onload = () => { setTimeout(() => window.print(), 500); };</script>"


def _document(title: str, body: str, extra_style: str = "") -> str:
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="UTF-8">\n'
        f"<title>{escape(title)}</title>\n<style>{_BASE_STYLE}{extra_style}</style>\n</head>\n"
        f"<body>\n{body}\n{_PRINT_SCRIPT}\n</body>\n</html>\n"
    )


def _format_date(value: date | datetime) -> str:
    return value.strftime("%B %d, %Y").replace(" 0", " ")


def render_audit_report(
    *,
    name: str,
    standard_short_name: str,
    items: Sequence[dict[str, Any]],
    score: int,
    completion: int,
    lead_auditor: str,
    generated_at: datetime,
) -> str:
    compliant = sum(1 for item in items if item.get("status") == "compliant")
    non_compliant = sum(1 for item in items if item.get("status") == "non-compliant")
    rows = []
    for item in items:
        status = item.get("status", "pending")
        badge = "NOT AUDITED" if status == "pending" else status.upper()
        notes = item.get("notes") or ""
        notes_html = (
            escape(notes) if notes else '<span style="color: #94a3b8; font-style: italic;">No specific notes recorded.</span>'
        )
        rows.append(
            '<div class="item">'
            '<div class="item-head">'
            f'<span class="indicator">INDICATOR {escape(str(item.get("clause_id", "")))}</span>'
            f'<span class="badge" style="background: {_STATUS_COLORS.get(status, "#64748b")};">{badge}</span>'
            "</div>"
            f'<p class="checkpoint">{escape(str(item.get("checkpoint", "")))}</p>'
            f'<div class="content"><span class="label">Auditor Field Observations</span>{notes_html}</div>'
            "</div>"
        )
    body = (
        '<div class="header">'
        f'<div><h1 class="title">RSPO Compliance AI</h1><div class="meta">{escape(name)}</div></div>'
        '<div class="meta" style="text-align: right;">'
        f"<p>Lead Auditor: {escape(lead_auditor)}</p>"
        f"<p>Standard: {escape(standard_short_name)}</p>"
        f"<p>Generated: {_format_date(generated_at)}</p>"
        "</div></div>"
        '<div class="stats-grid">'
        f'<div class="stat-card"><span class="stat-val">{score}%</span><span class="label">Audit Score</span></div>'
        f'<div class="stat-card"><span class="stat-val">{compliant}</span><span class="label">Compliant</span></div>'
        f'<div class="stat-card"><span class="stat-val">{non_compliant}</span><span class="label">NC Findings</span></div>'
        f'<div class="stat-card"><span class="stat-val">{completion}%</span><span class="label">Completion</span></div>'
        "</div>"
        '<h2 class="label">Audit Observation Records</h2>'
        + "".join(rows)
        + '<div class="footer">RSPO Intelligence Hub • Secure Digital Audit Record</div>'
    )
    extra_style = """
  .stats-grid { display: flex; gap: 12px; margin-bottom: 32px; }
  .stat-card { flex: 1; padding: 24px 8px; border-radius: 16px; border: 1.5px solid #e2e8f0; text-align: center; }
  .stat-val { font-size: 28px; font-weight: 900; display: block; margin-bottom: 8px; }
  .item { margin-bottom: 24px; padding: 18px; border: 1px solid #cbd5e1; border-radius: 12px; page-break-inside: avoid; }
  .item-head { display: flex; justify-content: space-between; margin-bottom: 10px; }
  .indicator { font-weight: 800; font-size: 11px; color: #064e3b; background: #ecfdf5; padding: 2px 8px; border-radius: 4px; }
  .badge { font-weight: 900; font-size: 10px; color: white; padding: 4px 14px; border-radius: 9999px; }
  .checkpoint { font-weight: 700; font-size: 14px; color: #0f172a; }
"""
    return _document(f"RSPO Digital Audit Report - {name}", body, extra_style)


def render_nc_report(draft: NcDraft, *, auditee: str, generated_at: datetime) -> str:
    sections = (
        ("Auditor's Original Finding", draft.original_finding),
        ("Refined Observation", draft.observation),
        ("Indicator Correlation", draft.requirement),
        ("Root Cause Analysis (RCA)", draft.root_cause),
        ("Corrective Action (Immediate Response)", draft.corrective_action),
        ("Systemic Prevention Plan (Long-term)", draft.prevention_plan),
    )
    sections_html = "".join(
        f'<div class="section"><span class="label">{label}</span><div class="content">{escape(value or "")}</div></div>'
        for label, value in sections
    )
    body = (
        '<div class="header">'
        '<div><h1 class="title">NC Management Response</h1>'
        f'<div class="meta">REF: {escape(draft.id)} | Auditee: {escape(auditee)}</div></div>'
        '<div class="meta" style="text-align: right;">'
        f"Standard: {escape(draft.standard_short_name)}<br>"
        f"Status: {escape(draft.status)}<br>"
        f"Generated: {_format_date(generated_at)}"
        "</div></div>"
        + sections_html
        + '<div class="footer">RSPO Intelligence Hub • Secure Workspace Analysis</div>'
    )
    return _document("RSPO Non-Conformity Management Response", body)


def render_invoice(invoice: Invoice, *, billed_to: str, organization: str | None, address: str | None) -> str:
    invoice_date = datetime.strptime(invoice.date, "%Y-%m-%d").date()
    body = (
        '<div class="header">'
        '<div class="title">RSPO Intelligence Hub</div>'
        f'<div style="text-align: right;"><h1>INVOICE</h1><p class="meta"># {escape(invoice.id)}</p></div>'
        "</div>"
        '<div class="details">'
        "<div><span class=\"label\">Billed To</span>"
        f"<p><strong>{escape(billed_to)}</strong></p>"
        f"<p>{escape(organization or 'Individual Professional')}</p>"
        f"<p>{escape(address or 'No address provided')}</p></div>"
        "<div><span class=\"label\">Invoice Date</span>"
        f"<p>{_format_date(invoice_date)}</p>"
        "<span class=\"label\">Billing Period</span>"
        f"<p>{escape(invoice.billing_period)}</p></div>"
        "</div>"
        "<table><thead><tr><th>Description</th><th>Quantity</th><th>Unit Price</th><th>Amount</th></tr></thead>"
        "<tbody><tr><td><strong>Intelligence Token Refill</strong><br>"
        "<span class=\"meta\">Cloud-hosted RSPO audit analysis pack</span></td>"
        f"<td>{invoice.tokens:,}</td><td>Pack</td><td>{escape(invoice.amount)}</td></tr></tbody></table>"
        '<div class="totals">'
        f"<div><span>Subtotal</span><span>{escape(invoice.amount)}</span></div>"
        "<div><span>Tax (0%)</span><span>$0.00</span></div>"
        f'<div class="grand-total"><span>Total</span><span>{escape(invoice.amount)}</span></div>'
        "</div>"
        f"<p class=\"meta\">PAYMENT STATUS: {escape(invoice.status.upper())}</p>"
        f"<p class=\"meta\">Provider: {escape(invoice.payment_method)}</p>"
        '<div class="footer">RSPO Compliance AI • Managed by RSPO Intelligence Hub • Secure Digital Transaction</div>'
    )
    extra_style = """
  .details { display: flex; justify-content: space-between; margin-bottom: 24px; }
  table { width: 100%; border-collapse: collapse; margin-bottom: 24px; }
  th { text-align: left; font-size: 10px; text-transform: uppercase; color: #64748b; border-bottom: 2px solid #e2e8f0; padding: 8px; }
  td { padding: 12px 8px; border-bottom: 1px solid #f1f5f9; font-size: 13px; }
  .totals { margin-left: auto; width: 240px; }
  .totals div { display: flex; justify-content: space-between; font-size: 13px; }
  .grand-total { font-weight: 900; border-top: 2px solid #1e293b; padding-top: 6px; }
"""
    return _document(f"Invoice {invoice.id}", body, extra_style)
