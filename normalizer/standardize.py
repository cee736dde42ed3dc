"""Picklist standardization tables.

Scraped picklist values arrive in whatever casing and separator style the
page layout used ("closed_won", "Closed Won", "CLOSED WON"). Each table
maps the canonicalized spelling to the display value; values not in a
table are kept verbatim.
"""

import re
from typing import Any, Dict


_SEPARATORS = re.compile(r"[\s_]+")


def picklist_key(value: Any) -> str:
    """Lower-case, trim and collapse whitespace/underscore runs to one space."""
    return _SEPARATORS.sub(" ", str(value).strip().lower()).strip()


# =============================================================================
# Tables
# =============================================================================

STAGE_NAMES: Dict[str, str] = {
    "prospecting": "Prospecting",
    "qualification": "Qualification",
    "needs analysis": "Needs Analysis",
    "value proposition": "Value Proposition",
    "id. decision makers": "Id. Decision Makers",
    "id decision makers": "Id. Decision Makers",
    "perception analysis": "Perception Analysis",
    "proposal/price quote": "Proposal/Price Quote",
    "proposal price quote": "Proposal/Price Quote",
    "proposal": "Proposal",
    "negotiation/review": "Negotiation/Review",
    "negotiation review": "Negotiation/Review",
    "negotiation": "Negotiation",
    "closed won": "Closed Won",
    "closed lost": "Closed Lost",
}

LEAD_SOURCES: Dict[str, str] = {
    "web": "Web",
    "phone": "Phone",
    "email": "Email",
    "partner": "Partner",
    "advertising": "Advertising",
    "social": "Social",
    "trade show": "Trade Show",
    "tradeshow": "Trade Show",
    "direct mail": "Direct Mail",
    "directmail": "Direct Mail",
    "employee referral": "Employee Referral",
    "employeereferral": "Employee Referral",
    "purchased list": "Purchased List",
    "purchasedlist": "Purchased List",
    "other": "Other",
}

RATINGS: Dict[str, str] = {
    "hot": "Hot",
    "warm": "Warm",
    "cold": "Cold",
    "1": "Hot",
    "2": "Warm",
    "3": "Cold",
}

INDUSTRIES: Dict[str, str] = {
    "technology": "Technology",
    "tech": "Technology",
    "healthcare": "Healthcare",
    "health care": "Healthcare",
    "health": "Healthcare",
    "finance": "Finance",
    "financial": "Finance",
    "banking": "Banking",
    "retail": "Retail",
    "manufacturing": "Manufacturing",
    "education": "Education",
    "government": "Government",
    "non-profit": "Non-Profit",
    "nonprofit": "Non-Profit",
    "consulting": "Consulting",
    "energy": "Energy",
    "utilities": "Utilities",
    "telecommunications": "Telecommunications",
    "telecom": "Telecommunications",
    "media": "Media",
    "entertainment": "Entertainment",
    "other": "Other",
}

ACCOUNT_TYPES: Dict[str, str] = {
    "prospect": "Prospect",
    "customer": "Customer",
    "partner": "Partner",
    "reseller": "Reseller",
    "vendor": "Vendor",
    "supplier": "Supplier",
    "competitor": "Competitor",
    "other": "Other",
}

OPPORTUNITY_TYPES: Dict[str, str] = {
    "new customer": "New Customer",
    "existing customer": "Existing Customer",
    "existing": "Existing Customer",
    "partner": "Partner",
    "reseller": "Reseller",
    "other": "Other",
}

FORECAST_CATEGORIES: Dict[str, str] = {
    "best case": "Best Case",
    "worst case": "Worst Case",
    "committed": "Committed",
    "commit": "Committed",
    "pipeline": "Pipeline",
    "forecast": "Forecast",
    "closed": "Closed",
    "omitted": "Omitted",
}

TASK_STATUSES: Dict[str, str] = {
    "not started": "Not Started",
    "in progress": "In Progress",
    "completed": "Completed",
    "waiting on someone else": "Waiting on someone else",
    "deferred": "Deferred",
}

TASK_PRIORITIES: Dict[str, str] = {
    "high": "High",
    "normal": "Normal",
    "low": "Low",
}

TASK_TYPES: Dict[str, str] = {
    "call": "Call",
    "meeting": "Meeting",
    "email": "Email",
    "task": "Task",
    "event": "Event",
    "other": "Other",
}

CLOSED_STAGES = {"closed won", "closed lost"}
WON_STAGES = {"closed won"}
CLOSED_TASK_STATUSES = {"completed"}


# =============================================================================
# Lookups
# =============================================================================

def standardize(value: Any, table: Dict[str, str]) -> Any:
    """Map a picklist value through `table`; unknown or empty values pass through."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return value
    return table.get(picklist_key(value), value)


def standardize_stage(value: Any) -> Any:
    return standardize(value, STAGE_NAMES)


def standardize_lead_source(value: Any) -> Any:
    return standardize(value, LEAD_SOURCES)


def standardize_rating(value: Any) -> Any:
    return standardize(value, RATINGS)


def standardize_industry(value: Any) -> Any:
    return standardize(value, INDUSTRIES)


def standardize_account_type(value: Any) -> Any:
    return standardize(value, ACCOUNT_TYPES)


def standardize_opportunity_type(value: Any) -> Any:
    return standardize(value, OPPORTUNITY_TYPES)


def standardize_forecast_category(value: Any) -> Any:
    return standardize(value, FORECAST_CATEGORIES)


def standardize_task_status(value: Any) -> Any:
    return standardize(value, TASK_STATUSES)


def standardize_task_priority(value: Any) -> Any:
    return standardize(value, TASK_PRIORITIES)


def standardize_task_type(value: Any) -> Any:
    return standardize(value, TASK_TYPES)


def is_closed_stage(stage: Any) -> bool:
    """True for "Closed Won" / "Closed Lost" in any spelling."""
    if not stage:
        return False
    return picklist_key(stage) in CLOSED_STAGES


def is_won_stage(stage: Any) -> bool:
    if not stage:
        return False
    return picklist_key(stage) in WON_STAGES


def is_closed_task_status(status: Any) -> bool:
    if not status:
        return False
    return picklist_key(status) in CLOSED_TASK_STATUSES
