from __future__ import annotations

from typing import Any, Sequence

from rspoassist.core.config import Settings
from rspoassist.domain.catalog import (
    TIER_FREE,
    Clause,
    Standard,
    clauses_for_standard,
    get_national_interpretation,
    language_name,
)
from rspoassist.domain.models import PolicyDocument


SYSTEM_INSTRUCTION = """
You are a world-class RSPO Assistant. You operate within four distinct frameworks based on the user's {selected_mode}.

### FRAMEWORK MODES:

1. **Option 1: RSPO Indicator Verification (Audit-style evidence check)**
   - Goal: High-precision technical analysis.
   - Behavior: Verify specific Indicator IDs against user-provided evidence. Be granular and strict.

2. **Option 2: Activity Compliance Check (Ensuring site activities follow rules)**
   - Goal: Procedural and operational review.
   - Behavior: Evaluate site activities or management plans against the RSPO standard requirements.

3. **Option 3: Findings Justification (Drafting responses to audit findings/NCs)**
   - Goal: Technical defense and argumentation.
   - Behavior: Build logical justifications for audit findings. Structure: Observation -> Requirement -> Justification -> Evidence.

4. **Option 4: General RSPO Enquiry (Quick questions & general summaries)**
   - Goal: Fast, high-level guidance.
   - Behavior: Provide concise summaries without deep technical codes unless specifically requested.
   - **STRICT CONSTRAINT: Responses in this mode MUST NOT exceed 150 words.**

STRICT RULES:
- NEVER state "You are compliant". Use "To demonstrate compliance...".
- ALWAYS cite Clause IDs in bold (e.g., **RSPO P&C 2.1.1**).
- Respond ONLY in the requested language.
- Use emojis to make headers distinct.
- Always respect the specific behavior profile of the {selected_mode}.
"""

FALLBACK_ANSWER = "I'm sorry, I couldn't generate a response based on the available RSPO documents."

OCR_UNREADABLE_MARKER = "ERROR: UNREADABLE_DOCUMENT"

OCR_PROMPT = f"""You are an expert OCR and document digitizer for RSPO Compliance audits.
1. Extract all text from this image accurately.
2. Maintain the structure, headings, and bullet points of the original SOP or policy.
3. Output ONLY the extracted text content.
4. If the image is not a document or is unreadable, state: "{OCR_UNREADABLE_MARKER}\""""

NC_DRAFT_FIELDS = ("observation", "requirement", "rootCause", "correctiveAction", "preventionPlan")

NC_DRAFT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {name: {"type": "string"} for name in NC_DRAFT_FIELDS},
    "required": list(NC_DRAFT_FIELDS),
}

CLAUSE_SELECTION_SCHEMA: dict[str, Any] = {"type": "array", "items": {"type": "string"}}

CHECKLIST_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {"clauseId": {"type": "string"}, "checkpoint": {"type": "string"}},
        "required": ["clauseId", "checkpoint"],
    },
}

MAX_SELECTED_CLAUSES = 10
# NC drafts only need a taste of each policy to stay grounded.
NC_POLICY_EXCERPT_CHARS = 500
_HISTORY_LIMIT = 20
_MODE_PREFIXES = ("TECHNICAL", "ACTIVITY", "ARGUMENTATIVE", "CONCISE")


def parse_mode(question: str) -> tuple[str, str]:
    """Split a ``MODE_X:`` prefixed query into its mode and the bare question."""
    for mode in _MODE_PREFIXES:
        prefix = f"MODE_{mode}:"
        if question.startswith(prefix):
            return mode, question[len(prefix):].strip()
    return "GENERAL", question


def match_clauses(question: str, standard_id: str) -> list[Clause]:
    # Simple keyword retrieval: clause id or title mentioned in the question.
    lowered = question.lower()
    return [
        clause
        for clause in clauses_for_standard(standard_id)
        if clause.id.lower() in lowered or clause.title.lower() in lowered
    ]


def select_chat_model(tier: str, settings: Settings) -> str:
    # Free accounts are served by the lower cost model.
    return settings.gemini_lite_model if tier == TIER_FREE else settings.gemini_model


def _policy_context(policies: Sequence[PolicyDocument]) -> str:
    if not policies:
        return ""
    lines = [f"{policy.name} ({policy.doc_type}): {policy.content}" for policy in policies]
    return "\nCompany Specific Policies Provided:\n" + "\n".join(lines)


def _ni_context(national_interpretations: Sequence[str]) -> str:
    names = []
    for ni_id in national_interpretations:
        ni = get_national_interpretation(ni_id)
        if ni is not None:
            names.append(ni.name)
    if not names:
        return ""
    return "\nNational Interpretations in scope: " + ", ".join(names)


def _history_context(history: Sequence[dict[str, str]]) -> str:
    recent = list(history)[-_HISTORY_LIMIT:]
    if not recent:
        return ""
    lines = [f"{item['role'].upper()}: {item['content']}" for item in recent]
    return "\nConversation so far:\n" + "\n".join(lines)


def build_chat_prompt(
    question: str,
    standard: Standard,
    language_code: str,
    policies: Sequence[PolicyDocument] = (),
    history: Sequence[dict[str, str]] = (),
    national_interpretations: Sequence[str] = (),
) -> str:
    mode, clean_question = parse_mode(question)
    target_language = language_name(language_code)
    clauses = match_clauses(clean_question, standard.id)
    if clauses:
        retrieved = "\n".join(f"ID: {clause.id}, Content: {clause.description}" for clause in clauses)
    else:
        retrieved = f"Search relevant RSPO requirements for {standard.short_name}"

    context = (
        f"\nActive Standard: {standard.name} ({standard.year})\n"
        f"OPERATIONAL_MODE: {mode}\n"
        f"OUTPUT_LANGUAGE: {target_language}\n"
        f"{_policy_context(policies)}{_ni_context(national_interpretations)}\n\n"
        f"Retrieved RSPO Context Documents:\n{retrieved}\n\n"
        f"REMINDER: Apply the {mode} framework as defined in your instructions.\n"
        f"{_history_context(history)}"
    )
    return (
        f"{context}\n\nIMPORTANT: YOU MUST RESPOND ONLY IN {target_language.upper()}."
        f"\n\nUser Question: {clean_question}"
    )


def build_nc_draft_prompt(
    finding: str,
    standard: Standard,
    language_code: str,
    policies: Sequence[PolicyDocument] = (),
) -> str:
    target_language = language_name(language_code)
    policy_context = ""
    if policies:
        excerpts = "\n".join(
            f"{policy.name}: {policy.content[:NC_POLICY_EXCERPT_CHARS]}" for policy in policies
        )
        policy_context = f"Available Company Context:\n{excerpts}"
    return f"""You are an RSPO Compliance Expert. Take the following audit finding and transform it into a structured professional management response.

Finding: "{finding}"
Standard: {standard.name}

{policy_context}

Generate a JSON response with the following keys:
1. "observation": A professional restatement of the finding.
2. "requirement": The specific RSPO Indicator and requirement being violated.
3. "rootCause": A deep analysis of why this happened (systemic/procedural).
4. "correctiveAction": The immediate action taken to fix the specific instance.
5. "preventionPlan": The long-term systemic change to ensure it never happens again.

RESPOND ONLY IN {target_language.upper()}."""


def build_clause_selection_prompt(audit_prompt: str, clauses: Sequence[Clause]) -> str:
    available = "\n".join(f"ID: {clause.id}, Title: {clause.title}" for clause in clauses)
    return f"""You are an RSPO Audit Lead.
The auditor wants to focus on: "{audit_prompt}"

From the following list of available RSPO Indicators for this standard, select the {MAX_SELECTED_CLAUSES} MOST RELEVANT indicators that need to be verified during this specific focused audit.
If fewer than {MAX_SELECTED_CLAUSES} are relevant, select only those.

Available Indicators:
{available}

Return ONLY a JSON array of the Indicator IDs."""


def build_checklist_prompt(clauses: Sequence[Clause], language_code: str, audit_prompt: str | None = None) -> str:
    target_language = language_name(language_code)
    focus = f'The specific audit focus is: "{audit_prompt}". ' if audit_prompt else ""
    listed = "\n".join(f"[{clause.id}] {clause.title}: {clause.description}" for clause in clauses)
    return f"""{focus}Convert the following RSPO clauses into a practical, actionable audit checklist for a field auditor.
Each item should be a "Verification Point" (what the auditor should physically check, observe, or ask for in the field).

Clauses:
{listed}

Output the response as a JSON array of objects with keys: "clauseId", "checkpoint".
RESPOND ONLY IN {target_language.upper()}."""
