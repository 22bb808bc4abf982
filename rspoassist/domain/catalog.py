from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import json
import logging
from pathlib import Path

from rspoassist.core.config import get_settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Standard:
    id: str
    name: str
    year: str
    short_name: str


@dataclass(frozen=True)
class Clause:
    # One RSPO indicator as referenced by prompts, checklists and clause search.
    id: str
    standard_id: str
    title: str
    description: str
    principle: str
    criterion: str
    indicator: str


@dataclass(frozen=True)
class Plan:
    tier: str
    price: str
    tokens: int
    features: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ModeOption:
    label: str
    value: str
    icon: str


@dataclass(frozen=True)
class Language:
    code: str
    name: str
    flag: str


@dataclass(frozen=True)
class NationalInterpretation:
    id: str
    name: str
    country: str


STANDARDS: tuple[Standard, ...] = (
    Standard(id="pc2018", name="Principles & Criteria", year="2018", short_name="P&C 2018"),
    Standard(id="ish2019", name="Independent Smallholder", year="2019", short_name="ISH 2019"),
    Standard(id="scc2020", name="Supply Chain Certification", year="2020", short_name="SCC 2020"),
)
DEFAULT_STANDARD_ID = "pc2018"

_BASE_CLAUSES: tuple[Clause, ...] = (
    Clause(
        id="RSPO P&C 7.3.1",
        standard_id="pc2018",
        title="New plantings and peatland",
        description=(
            "There shall be no new plantings on peat regardless of depth after 15 November 2018 "
            "in existing and new development areas."
        ),
        principle="7",
        criterion="7.3",
        indicator="7.3.1",
    ),
    Clause(
        id="RSPO P&C 2.1.1",
        standard_id="pc2018",
        title="Compliance with laws",
        description="Evidence of compliance with relevant legal requirements shall be available.",
        principle="2",
        criterion="2.1",
        indicator="2.1.1",
    ),
    Clause(
        id="RSPO ISH 1.1.1",
        standard_id="ish2019",
        title="Smallholder Legal Compliance",
        description="Smallholders provide proof of ownership or rights to use the land.",
        principle="1",
        criterion="1.1",
        indicator="1.1.1",
    ),
)

TIER_FREE = "Free"
TIER_STARTER = "Starter"
TIER_PROFESSIONAL = "Professional"
TIER_ENTERPRISE = "Enterprise"
TIERS = (TIER_FREE, TIER_STARTER, TIER_PROFESSIONAL, TIER_ENTERPRISE)

PLANS: tuple[Plan, ...] = (
    Plan(
        tier=TIER_FREE,
        price="$0",
        tokens=1_000,
        features=(
            "1,000 tokens per week",
            "1-month evaluation period",
            "All four assistant frameworks",
        ),
    ),
    Plan(
        tier=TIER_STARTER,
        price="$9.00",
        tokens=50_000,
        features=(
            "50,000 tokens",
            "Full model for every answer",
            "Chat history and session archive",
        ),
    ),
    Plan(
        tier=TIER_PROFESSIONAL,
        price="$29.00",
        tokens=250_000,
        features=(
            "250,000 tokens",
            "Digital Toolbox: Document Vault, Checklist Generator, NC Drafter",
            "Printable audit and NC reports",
        ),
    ),
    Plan(
        tier=TIER_ENTERPRISE,
        price="$50.00",
        tokens=1_000_000,
        features=(
            "1M to 10M tokens",
            "Digital Toolbox for the whole team",
            "Invoice billing",
        ),
    ),
)

# Enterprise allowances are sold in whole millions.
ENTERPRISE_TOKEN_OPTIONS: tuple[int, ...] = tuple((i + 1) * 1_000_000 for i in range(10))
ENTERPRISE_PRICE_PER_MILLION_USD = 50

MODE_TECHNICAL = "TECHNICAL"
MODE_ACTIVITY = "ACTIVITY"
MODE_ARGUMENTATIVE = "ARGUMENTATIVE"
MODE_CONCISE = "CONCISE"
DEFAULT_MODE = MODE_CONCISE

ONBOARDING_OPTIONS: tuple[ModeOption, ...] = (
    ModeOption(label="Indicator Verification", value=MODE_TECHNICAL, icon="fa-magnifying-glass-chart"),
    ModeOption(label="Activity Compliance", value=MODE_ACTIVITY, icon="fa-person-digging"),
    ModeOption(label="Findings Justification", value=MODE_ARGUMENTATIVE, icon="fa-scale-balanced"),
    ModeOption(label="General Enquiry", value=MODE_CONCISE, icon="fa-comments"),
)

PRIMING_MESSAGES: dict[str, str] = {
    MODE_TECHNICAL: (
        "Ready for **Indicator Verification**. Please provide the **Indicator ID** "
        "(e.g., P&C 2018 - 6.2.1) and the **Evidence** you wish to verify."
    ),
    MODE_ACTIVITY: (
        "Ready for **Activity Compliance**. Please describe the **Site Activity** "
        "or management plan you are reviewing."
    ),
    MODE_ARGUMENTATIVE: (
        "Ready for **Findings Justification**. Please share the **Audit Finding** "
        "or **NC** text so we can build a technical defense."
    ),
    MODE_CONCISE: "Ready for **General Enquiry**. How can I help you with the RSPO process today?",
}

LANGUAGES: tuple[Language, ...] = (
    Language(code="en", name="English", flag="🇬🇧"),
    Language(code="id", name="Bahasa Indonesia", flag="🇮🇩"),
    Language(code="tp", name="Tok Pisin", flag="🇵🇬"),
)
LANGUAGE_MAP: dict[str, str] = {language.code: language.name for language in LANGUAGES}

NATIONAL_INTERPRETATIONS: tuple[NationalInterpretation, ...] = (
    NationalInterpretation(id="ni-malaysia", name="Malaysia National Interpretation", country="Malaysia"),
    NationalInterpretation(id="ni-indonesia", name="Indonesia National Interpretation", country="Indonesia"),
    NationalInterpretation(id="ni-png", name="Papua New Guinea National Interpretation", country="Papua New Guinea"),
    NationalInterpretation(id="ni-colombia", name="Colombia National Interpretation", country="Colombia"),
    NationalInterpretation(id="ni-thailand", name="Thailand National Interpretation", country="Thailand"),
    NationalInterpretation(id="ni-ghana", name="Ghana National Interpretation", country="Ghana"),
)

DISCLAIMER = (
    "This tool provides guidance only and does not replace official RSPO audits "
    "or certification decisions."
)


def get_standard(standard_id: str) -> Standard | None:
    return next((standard for standard in STANDARDS if standard.id == standard_id), None)


def get_plan(tier: str) -> Plan | None:
    return next((plan for plan in PLANS if plan.tier == tier), None)


def get_mode_option(mode: str) -> ModeOption | None:
    return next((option for option in ONBOARDING_OPTIONS if option.value == mode), None)


def get_national_interpretation(ni_id: str) -> NationalInterpretation | None:
    return next((ni for ni in NATIONAL_INTERPRETATIONS if ni.id == ni_id), None)


def language_name(code: str) -> str:
    return LANGUAGE_MAP.get(code, "English")


@lru_cache(maxsize=4)
def _load_knowledge_base(path: str | None) -> tuple[Clause, ...]:
    if not path:
        return _BASE_CLAUSES
    # Extra clauses extend the built-in set; ids already present are skipped.
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    known = {clause.id for clause in _BASE_CLAUSES}
    extra: list[Clause] = []
    for item in raw:
        if item["id"] in known:
            continue
        extra.append(
            Clause(
                id=item["id"],
                standard_id=item["standard_id"],
                title=item["title"],
                description=item["description"],
                principle=str(item.get("principle", "")),
                criterion=str(item.get("criterion", "")),
                indicator=str(item.get("indicator", "")),
            )
        )
        known.add(item["id"])
    logger.info("knowledge_base_loaded path=%s extra_clauses=%s", path, len(extra))
    return _BASE_CLAUSES + tuple(extra)


def get_knowledge_base() -> tuple[Clause, ...]:
    return _load_knowledge_base(get_settings().knowledge_base_path)


def clauses_for_standard(standard_id: str) -> list[Clause]:
    return [clause for clause in get_knowledge_base() if clause.standard_id == standard_id]
