"""Object-type dispatch table.

One ObjectTypeConfig per supported CRM object type holds everything that
differs between types: required fields, the raw-key alias table, composite
field derivation, value normalization and semantic validation. Adding a type
means adding one entry to OBJECT_TYPE_CONFIGS.

Alias keys are written in normalized form (see field_mapper.normalize_key).
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Tuple

from core.models.canonical import ObjectType
from normalizer import rules
from normalizer.coercers import (
    clean_email,
    clean_phone,
    clean_website,
    is_empty,
    parse_boolean,
    parse_currency,
    parse_date,
    parse_integer,
    parse_percentage,
)
from normalizer.rules import ValidationIssue
from normalizer.standardize import (
    is_closed_stage,
    is_closed_task_status,
    is_won_stage,
    standardize_account_type,
    standardize_forecast_category,
    standardize_industry,
    standardize_lead_source,
    standardize_opportunity_type,
    standardize_rating,
    standardize_stage,
    standardize_task_priority,
    standardize_task_status,
    standardize_task_type,
)


Fields = Dict[str, Any]
RuleSet = Callable[[Mapping[str, Any], Mapping[str, Any]], List[ValidationIssue]]


@dataclass(frozen=True)
class ObjectTypeConfig:
    """Per-type behavior.

    Attributes:
        object_type: The type this entry describes
        required_fields: Fields that must be non-empty for the record to be accepted
        field_mappings: Normalized raw key → canonical key
        derive: Composite-field derivation applied right after mapping
        normalize: Coercion and picklist standardization
        validate: Semantic rule set, called with (incoming fields, effective values)
    """
    object_type: ObjectType
    required_fields: Tuple[str, ...]
    field_mappings: Dict[str, str]
    derive: Callable[[Fields], Fields]
    normalize: Callable[[Fields], Fields]
    validate: RuleSet


# =============================================================================
# Alias Tables
# =============================================================================

BASE_FIELD_MAPPINGS = {
    "id": "id",
    "record_id": "id",
    "name": "name",
    "full_name": "name",
    "first_name": "firstName",
    "last_name": "lastName",
    "email": "email",
    "email_address": "email",
    "phone": "phone",
    "phone_number": "phone",
    "mobile_phone": "mobilePhone",
    "mobile": "mobilePhone",
    "account_name": "accountName",
    "owner_name": "ownerName",
    "owner": "ownerName",
    "owner_full_name": "ownerName",
    "created_date": "createdDate",
    "last_modified_date": "lastModifiedDate",
    "close_date": "closeDate",
    "amount": "amount",
    "probability": "probability",
    "probability_percent": "probability",
    "stage_name": "stage",
    "status": "status",
    "priority": "priority",
    "subject": "subject",
    "description": "description",
}

LEAD_FIELD_MAPPINGS = {
    "firstname": "firstName",
    "lastname": "lastName",
    "company": "company",
    "company_account": "company",
    "title": "title",
    "lead_source": "leadSource",
    "lead_status": "status",
    "industry": "industry",
    "rating": "rating",
    "annual_revenue": "annualRevenue",
    "number_of_employees": "numberOfEmployees",
    "no_of_employees": "numberOfEmployees",
    "website": "website",
    "is_converted": "isConverted",
    "converted_date": "convertedDate",
    "converted_account_id": "convertedAccountId",
    "converted_contact_id": "convertedContactId",
    "converted_opportunity_id": "convertedOpportunityId",
}

CONTACT_FIELD_MAPPINGS = {
    "firstname": "firstName",
    "lastname": "lastName",
    "accountid": "accountId",
    "title": "title",
    "department": "department",
    "birthdate": "birthdate",
    "mailing_street": "mailingStreet",
    "mailing_city": "mailingCity",
    "mailing_state": "mailingState",
    "mailing_state_province": "mailingState",
    "mailing_postal_code": "mailingPostalCode",
    "mailing_zip_postal_code": "mailingPostalCode",
    "mailing_country": "mailingCountry",
    "other_street": "otherStreet",
    "other_city": "otherCity",
    "other_state": "otherState",
    "other_postal_code": "otherPostalCode",
    "other_country": "otherCountry",
    "mobilephone": "mobilePhone",
    "homephone": "homePhone",
    "home_phone": "homePhone",
    "otherphone": "otherPhone",
    "other_phone": "otherPhone",
    "fax": "fax",
    "assistant_name": "assistantName",
    "assistant": "assistantName",
    "assistant_phone": "assistantPhone",
    "asst_phone": "assistantPhone",
    "lead_source": "leadSource",
}

ACCOUNT_FIELD_MAPPINGS = {
    # In account views "Account Name" is the record's own name
    "account_name": "name",
    "accountnumber": "accountNumber",
    "account_number": "accountNumber",
    "accountsource": "accountSource",
    "account_source": "accountSource",
    "annualrevenue": "annualRevenue",
    "annual_revenue": "annualRevenue",
    "billingstreet": "billingStreet",
    "billing_street": "billingStreet",
    "billingcity": "billingCity",
    "billing_city": "billingCity",
    "billingstate": "billingState",
    "billing_state": "billingState",
    "billing_state_province": "billingState",
    "billingpostalcode": "billingPostalCode",
    "billing_postal_code": "billingPostalCode",
    "billingcountry": "billingCountry",
    "billing_country": "billingCountry",
    "shippingstreet": "shippingStreet",
    "shipping_street": "shippingStreet",
    "shippingcity": "shippingCity",
    "shipping_city": "shippingCity",
    "shippingstate": "shippingState",
    "shipping_state": "shippingState",
    "shippingpostalcode": "shippingPostalCode",
    "shipping_postal_code": "shippingPostalCode",
    "shippingcountry": "shippingCountry",
    "shipping_country": "shippingCountry",
    "industry": "industry",
    "ownership": "ownership",
    "fax": "fax",
    "website": "website",
    "sic": "sic",
    "sic_code": "sic",
    "ticker_symbol": "tickerSymbol",
    "type": "type",
    "account_type": "type",
    "numberofemployees": "numberOfEmployees",
    "number_of_employees": "numberOfEmployees",
    "employees": "numberOfEmployees",
    "rating": "rating",
    "account_rating": "rating",
    "site": "site",
    "account_site": "site",
    "parentid": "parentId",
    "parent_name": "parentName",
    "parent_account": "parentName",
}

OPPORTUNITY_FIELD_MAPPINGS = {
    "opportunity_name": "name",
    "accountid": "accountId",
    "closedate": "closeDate",
    "stagename": "stage",
    "expected_revenue": "expectedRevenue",
    "total_opportunity_quantity": "totalOpportunityQuantity",
    "type": "type",
    "opportunity_type": "type",
    "lead_source": "leadSource",
    "next_step": "nextStep",
    "campaignid": "campaignId",
    "campaign_name": "campaignName",
    "primary_campaign_source": "campaignName",
    "contactid": "contactId",
    "contact_name": "contactName",
    "ownerid": "ownerId",
    "opportunity_owner": "ownerName",
    "forecast_category": "forecastCategory",
    "pricebook2id": "pricebookId",
    "contractid": "contractId",
    "fiscal_year": "fiscalYear",
    "fiscal_quarter": "fiscalQuarter",
    "fiscal_period": "fiscalPeriod",
    "has_opportunity_line_item": "hasOpportunityLineItem",
    "is_closed": "isClosed",
    "is_won": "isWon",
}

TASK_FIELD_MAPPINGS = {
    "whoid": "whoId",
    "whoname": "whoName",
    "who_name": "whoName",
    "name_who": "whoName",
    "whatid": "whatId",
    "whatname": "whatName",
    "what_name": "whatName",
    "related_to": "whatName",
    "activitydate": "activityDate",
    "activity_date": "activityDate",
    "duedate": "dueDate",
    "due_date": "dueDate",
    "date": "activityDate",
    "reminderdatetime": "reminderDateTime",
    "reminder_date_time": "reminderDateTime",
    "reminder_set": "reminderDateTime",
    "isremindersent": "isReminderSent",
    "type": "type",
    "task_type": "type",
    "tasksubtype": "taskSubtype",
    "task_subtype": "taskSubtype",
    "ownerid": "ownerId",
    "assigned_to": "ownerName",
    "assigned_alias": "ownerName",
    "createdbyid": "createdById",
    "createdby_name": "createdByName",
    "lastmodifiedbyid": "lastModifiedById",
    "lastmodifiedby_name": "lastModifiedByName",
    "accountid": "accountId",
    "isclosed": "isClosed",
    "is_closed": "isClosed",
    "isarchived": "isArchived",
    "is_archived": "isArchived",
    "calltype": "callType",
    "call_type": "callType",
    "calldurationinseconds": "callDurationInSeconds",
    "call_duration": "callDurationInSeconds",
    "callobject": "callObject",
}


# =============================================================================
# Derivation and Normalization
# =============================================================================

def _no_derivation(fields: Fields) -> Fields:
    return dict(fields)


def derive_full_name(fields: Fields) -> Fields:
    """Synthesize `name` from firstName + lastName when it is absent."""
    derived = dict(fields)
    first, last = derived.get("firstName"), derived.get("lastName")
    if not is_empty(first) and not is_empty(last) and is_empty(derived.get("name")):
        derived["name"] = f"{str(first).strip()} {str(last).strip()}".strip()
    return derived


def _apply(fields: Fields, converters: Mapping[str, Callable[[Any], Any]]) -> Fields:
    """Run each converter on its field when the field carries a value."""
    out = dict(fields)
    for field_name, convert in converters.items():
        if field_name in out and not is_empty(out[field_name]):
            out[field_name] = convert(out[field_name])
    return out


def _flag(value: Any) -> bool:
    return parse_boolean(value) is True


COMMON_CONVERTERS = {
    "createdDate": parse_date,
    "lastModifiedDate": parse_date,
}


def normalize_lead(fields: Fields) -> Fields:
    return _apply(fields, {
        **COMMON_CONVERTERS,
        "email": clean_email,
        "phone": clean_phone,
        "mobilePhone": clean_phone,
        "annualRevenue": parse_currency,
        "numberOfEmployees": parse_integer,
        "rating": standardize_rating,
        "leadSource": standardize_lead_source,
        "website": clean_website,
        "isConverted": _flag,
        "convertedDate": parse_date,
    })


def normalize_contact(fields: Fields) -> Fields:
    return _apply(fields, {
        **COMMON_CONVERTERS,
        "email": clean_email,
        "phone": clean_phone,
        "mobilePhone": clean_phone,
        "homePhone": clean_phone,
        "otherPhone": clean_phone,
        "fax": clean_phone,
        "assistantPhone": clean_phone,
        "birthdate": parse_date,
        "leadSource": standardize_lead_source,
    })


def normalize_account(fields: Fields) -> Fields:
    return _apply(fields, {
        **COMMON_CONVERTERS,
        "annualRevenue": parse_currency,
        "numberOfEmployees": parse_integer,
        "phone": clean_phone,
        "fax": clean_phone,
        "website": clean_website,
        "industry": standardize_industry,
        "type": standardize_account_type,
        "rating": standardize_rating,
    })


def normalize_opportunity(fields: Fields) -> Fields:
    out = _apply(fields, {
        **COMMON_CONVERTERS,
        "amount": parse_currency,
        "expectedRevenue": parse_currency,
        "totalOpportunityQuantity": parse_currency,
        "closeDate": parse_date,
        "probability": parse_percentage,
        "stage": standardize_stage,
        "type": standardize_opportunity_type,
        "forecastCategory": standardize_forecast_category,
        "leadSource": standardize_lead_source,
        "isClosed": _flag,
        "isWon": _flag,
        "hasOpportunityLineItem": _flag,
    })

    amount, probability = out.get("amount"), out.get("probability")
    if is_empty(out.get("expectedRevenue")) and isinstance(amount, float) and isinstance(probability, float):
        out["expectedRevenue"] = amount * probability / 100

    # Closed/won flags follow the stage only when this record carries one
    if not is_empty(out.get("stage")):
        out["isClosed"] = is_closed_stage(out["stage"])
        out["isWon"] = is_won_stage(out["stage"])
    return out


def normalize_task(fields: Fields) -> Fields:
    out = _apply(fields, {
        **COMMON_CONVERTERS,
        "activityDate": parse_date,
        "dueDate": parse_date,
        "reminderDateTime": parse_date,
        "callDurationInSeconds": parse_integer,
        "status": standardize_task_status,
        "priority": standardize_task_priority,
        "type": standardize_task_type,
        "isClosed": _flag,
        "isArchived": _flag,
        "isReminderSent": _flag,
    })
    if not is_empty(out.get("status")):
        out["isClosed"] = is_closed_task_status(out["status"])
    return out


# =============================================================================
# Dispatch Table
# =============================================================================

OBJECT_TYPE_CONFIGS: Dict[ObjectType, ObjectTypeConfig] = {
    ObjectType.LEAD: ObjectTypeConfig(
        object_type=ObjectType.LEAD,
        required_fields=("id",),
        field_mappings={**BASE_FIELD_MAPPINGS, **LEAD_FIELD_MAPPINGS},
        derive=derive_full_name,
        normalize=normalize_lead,
        validate=rules.validate_person,
    ),
    ObjectType.CONTACT: ObjectTypeConfig(
        object_type=ObjectType.CONTACT,
        required_fields=("id",),
        field_mappings={**BASE_FIELD_MAPPINGS, **CONTACT_FIELD_MAPPINGS},
        derive=derive_full_name,
        normalize=normalize_contact,
        validate=rules.validate_person,
    ),
    ObjectType.ACCOUNT: ObjectTypeConfig(
        object_type=ObjectType.ACCOUNT,
        required_fields=("id", "name"),
        field_mappings={**BASE_FIELD_MAPPINGS, **ACCOUNT_FIELD_MAPPINGS},
        derive=_no_derivation,
        normalize=normalize_account,
        validate=rules.validate_account,
    ),
    ObjectType.OPPORTUNITY: ObjectTypeConfig(
        object_type=ObjectType.OPPORTUNITY,
        required_fields=("id", "name"),
        field_mappings={**BASE_FIELD_MAPPINGS, **OPPORTUNITY_FIELD_MAPPINGS},
        derive=_no_derivation,
        normalize=normalize_opportunity,
        validate=rules.validate_opportunity,
    ),
    ObjectType.TASK: ObjectTypeConfig(
        object_type=ObjectType.TASK,
        required_fields=("id", "subject"),
        field_mappings={**BASE_FIELD_MAPPINGS, **TASK_FIELD_MAPPINGS},
        derive=_no_derivation,
        normalize=normalize_task,
        validate=rules.validate_task,
    ),
}


def get_config(object_type: Any) -> ObjectTypeConfig:
    """Look up the config for an object-type tag.

    Raises:
        ValueError: If the tag does not name a supported object type
    """
    return OBJECT_TYPE_CONFIGS[ObjectType.parse(object_type)]


def canonical_fields(object_type: Any) -> List[str]:
    """Distinct canonical field names the alias table can produce, sorted."""
    return sorted(set(get_config(object_type).field_mappings.values()))
