"""Selectable values offered by the onboarding questionnaire steps."""

from __future__ import annotations

from .models import FieldGroup

OCCUPATIONS: dict[str, str] = {
    "self-employed": "Self Employed",
    "employed": "Employed",
    "part-time": "Part-time",
    "pensioner": "Pensioner",
    "student": "Student",
}

PROFESSIONS: dict[str, str] = {
    "accountant": "Accountant",
    "architect": "Architect",
    "artist": "Artist",
    "business-owner": "Business Owner",
    "consultant": "Consultant",
    "doctor": "Doctor",
    "engineer": "Engineer",
    "financial-analyst": "Financial Analyst",
    "graphic-designer": "Graphic Designer",
    "it-professional": "IT Professional",
    "lawyer": "Lawyer",
    "manager": "Manager",
    "marketing": "Marketing Professional",
    "nurse": "Nurse",
    "professor": "Professor",
    "real-estate-agent": "Real Estate Agent",
    "researcher": "Researcher",
    "sales": "Sales Professional",
    "student": "Student",
    "teacher": "Teacher",
    "other": "Other",
}

WEALTH_SOURCES: dict[str, str] = {
    "employment": "Employment Income",
    "business": "Business Income",
    "investment": "Investment Returns",
    "inheritance": "Inheritance",
    "real-estate": "Real Estate",
    "pension": "Pension",
    "savings": "Savings",
    "other": "Other",
}

ANNUAL_INCOME_RANGES: dict[str, str] = {
    "0-25000": "Less than €25,000",
    "25000-50000": "€25,000 - €50,000",
    "50000-100000": "€50,000 - €100,000",
    "100000-250000": "€100,000 - €250,000",
    "250000-500000": "€250,000 - €500,000",
    "500000-1000000": "€500,000 - €1,000,000",
    "1000000+": "More than €1,000,000",
}

NET_WORTH_RANGES: dict[str, str] = {
    "0-50000": "Less than €50,000",
    "50000-100000": "€50,000 - €100,000",
    "100000-250000": "€100,000 - €250,000",
    "250000-500000": "€250,000 - €500,000",
    "500000-1000000": "€500,000 - €1,000,000",
    "1000000-5000000": "€1,000,000 - €5,000,000",
    "5000000+": "More than €5,000,000",
}

ANNUAL_TRANSACTION_RANGES: dict[str, str] = {
    "0-10000": "Less than €10,000",
    "10000-50000": "€10,000 - €50,000",
    "50000-100000": "€50,000 - €100,000",
    "100000-500000": "€100,000 - €500,000",
    "500000-1000000": "€500,000 - €1,000,000",
    "1000000+": "More than €1,000,000",
}

INDUSTRIES: dict[str, str] = {
    "agriculture": "Agriculture & Forestry",
    "banking": "Banking & Financial Services",
    "construction": "Construction & Real Estate",
    "consumer-goods": "Consumer Goods",
    "education": "Education",
    "energy": "Energy & Utilities",
    "healthcare": "Healthcare",
    "it": "Information Technology",
    "insurance": "Insurance",
    "manufacturing": "Manufacturing",
    "media": "Media & Entertainment",
    "mining": "Mining & Metals",
    "professional-services": "Professional Services",
    "public-sector": "Public Sector",
    "retail": "Retail & Wholesale",
    "technology": "Technology",
    "telecommunications": "Telecommunications",
    "transportation": "Transportation & Logistics",
    "travel": "Travel & Hospitality",
    "other": "Other",
}

ORGANIZATION_TYPES: dict[str, str] = {
    "private-limited": "Private Limited Company",
    "public-limited": "Public Limited Company",
    "partnership": "Partnership",
    "llp": "Limited Liability Partnership",
    "sole-proprietorship": "Sole Proprietorship",
    "trust": "Trust",
    "foundation": "Foundation",
    "non-profit": "Non-Profit Organization",
    "government": "Government Entity",
    "cooperative": "Cooperative",
    "investment-fund": "Investment Fund",
    "holding-company": "Holding Company",
    "branch-office": "Branch Office",
    "representative-office": "Representative Office",
    "other": "Other",
}

ANTICIPATED_ANNUAL_AMOUNTS: dict[str, str] = {
    "0-100000": "Less than €100,000",
    "100000-500000": "€100,000 - €500,000",
    "500000-1000000": "€500,000 - €1,000,000",
    "1000000-5000000": "€1,000,000 - €5,000,000",
    "5000000-10000000": "€5,000,000 - €10,000,000",
    "10000000-50000000": "€10,000,000 - €50,000,000",
    "50000000+": "More than €50,000,000",
}

YES_NO: dict[str, str] = {"yes": "Yes", "no": "No"}

OPTION_CATALOG: dict[tuple[FieldGroup, str], dict[str, str]] = {
    (FieldGroup.EMPLOYMENT, "occupation"): OCCUPATIONS,
    (FieldGroup.EMPLOYMENT, "profession"): PROFESSIONS,
    (FieldGroup.INCOME, "source_of_wealth"): WEALTH_SOURCES,
    (FieldGroup.INCOME, "annual_income"): ANNUAL_INCOME_RANGES,
    (FieldGroup.INCOME, "net_worth"): NET_WORTH_RANGES,
    (FieldGroup.INCOME, "annual_transactions"): ANNUAL_TRANSACTION_RANGES,
    (FieldGroup.CLIENT_TYPE, "industry"): INDUSTRIES,
    (FieldGroup.CLIENT_TYPE, "organization_type"): ORGANIZATION_TYPES,
    (FieldGroup.TRANSACTION_DETAILS, "anticipated_annual_amount"): ANTICIPATED_ANNUAL_AMOUNTS,
    (FieldGroup.REGULATORY_STATUS, "is_financially_supervised"): YES_NO,
    (FieldGroup.REGULATORY_STATUS, "is_listed_on_exchange"): YES_NO,
}


def options_for(group: FieldGroup, field: str) -> dict[str, str] | None:
    return OPTION_CATALOG.get((FieldGroup(group), field))


def is_known_option(group: FieldGroup, field: str, value: str) -> bool:
    options = options_for(group, field)
    return options is None or value in options


def catalog_payload() -> dict[str, dict[str, dict[str, str]]]:
    payload: dict[str, dict[str, dict[str, str]]] = {}
    for (group, field), options in OPTION_CATALOG.items():
        payload.setdefault(group.value, {})[field] = dict(options)
    return payload
