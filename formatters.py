"""
Pure formatting helpers: Navigator agreement records -> text blocks for the
native tool protocol, and -> search/fetch shapes for the ChatGPT connector.
"""
import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from models import Agreement, AgreementParty, UserInfo

# Placeholder; Navigator has no stable public per-agreement link.
AGREEMENT_URL = "https://navigator.docusign.com/agreement/{id}"
SNIPPET_CHARS = 200
LIST_SUMMARY_CHARS = 100


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _parse_iso(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None


def format_date(value: str) -> str:
    dt = _parse_iso(value)
    return dt.strftime("%Y-%m-%d") if dt else value


def format_datetime(value: str) -> str:
    dt = _parse_iso(value)
    if not dt:
        return value
    suffix = " UTC" if dt.utcoffset() is not None and not dt.utcoffset() else ""
    return dt.strftime("%Y-%m-%d %H:%M:%S") + suffix


def agreement_url(agreement_id: str) -> str:
    return AGREEMENT_URL.format(id=agreement_id)


def agreement_title(agreement: Agreement) -> str:
    return agreement.title or agreement.file_name or "Untitled Agreement"


# ===== Parties =====

def party_name(party: AgreementParty) -> str:
    return party.preferred_name or party.name_in_agreement or "Unknown Party"


def format_parties(parties: Optional[Iterable[AgreementParty]]) -> str:
    names = [party_name(p) for p in parties or []]
    return ", ".join(names) if names else "No parties specified"


def _named_parties(agreement: Agreement) -> List[str]:
    # only parties that actually carry a name
    return [p.preferred_name or p.name_in_agreement for p in agreement.parties or [] if p.preferred_name or p.name_in_agreement]


# ===== Structured views =====

def summarize_agreement(agreement: Agreement) -> Dict[str, Any]:
    summary: Dict[str, Any] = {
        "id": agreement.id,
        "title": agreement_title(agreement),
        "type": agreement.type or "Unknown Type",
        "status": agreement.status or "Unknown Status",
        "parties": format_parties(agreement.parties),
    }
    provisions = agreement.provisions
    if provisions and provisions.effective_date:
        summary["effectiveDate"] = provisions.effective_date
    if provisions and provisions.expiration_date:
        summary["expirationDate"] = provisions.expiration_date
    return summary


def agreement_details(agreement: Agreement) -> Dict[str, Any]:
    provisions = agreement.provisions
    created_at = agreement.metadata.created_at if agreement.metadata else None
    return {
        "id": agreement.id,
        "title": agreement.title or "Untitled Agreement",
        "fileName": agreement.file_name or "Unknown File",
        "type": agreement.type or "Unknown Type",
        "category": agreement.category or "Unknown Category",
        "status": agreement.status or "Unknown Status",
        "summary": agreement.summary or "No summary available",
        "parties": [
            {
                "preferredName": p.preferred_name or "Unknown",
                "nameInAgreement": p.name_in_agreement or "Unknown",
                "displayName": party_name(p),
            }
            for p in agreement.parties or []
        ],
        "provisions": {
            "effectiveDate": (provisions and provisions.effective_date) or "Not specified",
            "expirationDate": (provisions and provisions.expiration_date) or "Not specified",
            "totalValue": (provisions and provisions.total_agreement_value) or "Not specified",
            "hasEffectiveDate": bool(provisions and provisions.effective_date),
            "hasExpirationDate": bool(provisions and provisions.expiration_date),
            "hasTotalValue": bool(provisions and provisions.total_agreement_value),
        },
        "metadata": {"createdAt": created_at or "Unknown", "hasCreatedAt": bool(created_at)},
    }


# ===== Text blocks =====

def _optional_lines(agreement: Agreement, indent: str = "", summary_limit: Optional[int] = None) -> List[str]:
    lines = []
    names = _named_parties(agreement)
    if names:
        lines.append(f"{indent}Parties: {', '.join(names)}")
    provisions = agreement.provisions
    if provisions and provisions.effective_date:
        lines.append(f"{indent}Effective Date: {format_date(provisions.effective_date)}")
    if provisions and provisions.expiration_date:
        lines.append(f"{indent}Expiration Date: {format_date(provisions.expiration_date)}")
    if provisions and provisions.total_agreement_value:
        lines.append(f"{indent}Total Value: {provisions.total_agreement_value}")
    if agreement.summary:
        summary = _truncate(agreement.summary, summary_limit) if summary_limit else agreement.summary
        lines.append(f"{indent}Summary: {summary}")
    if agreement.metadata and agreement.metadata.created_at:
        lines.append(f"{indent}Created: {format_datetime(agreement.metadata.created_at)}")
    return lines


def agreements_list_text(agreements: List[Agreement]) -> str:
    count = len(agreements)
    text = f"Found {count} DocuSign Navigator agreement{'' if count == 1 else 's'}"
    if not agreements:
        return text

    blocks = []
    for i, a in enumerate(agreements, start=1):
        lines = [
            f"{i}. {a.title or 'No Title'}",
            f"   ID: {a.id}",
            f"   Type: {a.type or 'Unknown'}",
            f"   Category: {a.category or 'Unknown'}",
            f"   Status: {a.status or 'Unknown'}",
            f"   File: {a.file_name or 'Unknown'}",
        ]
        lines.extend(_optional_lines(a, indent="   ", summary_limit=LIST_SUMMARY_CHARS))
        blocks.append("\n".join(lines))
    return text + "\n\nAgreement Details:\n\n" + "\n\n".join(blocks)


def agreement_detail_text(agreement: Agreement) -> str:
    lines = [
        "DocuSign Navigator Agreement Details:",
        "",
        f"Title: {agreement.title or 'No Title'}",
        f"ID: {agreement.id}",
        f"Type: {agreement.type or 'Unknown'}",
        f"Category: {agreement.category or 'Unknown'}",
        f"Status: {agreement.status or 'Unknown'}",
        f"File: {agreement.file_name or 'Unknown'}",
    ]
    lines.extend(_optional_lines(agreement))
    return "\n".join(lines)


def agreement_content_text(agreement: Agreement) -> str:
    """Full plain-text rendering used as the connector's `content`."""
    parts = [
        f"Title: {agreement.title or 'Untitled Agreement'}",
        f"Type: {agreement.type or 'Unknown'}",
        f"Category: {agreement.category or 'Unknown'}",
        f"Status: {agreement.status or 'Unknown'}",
        f"File: {agreement.file_name or 'Unknown'}",
    ]
    if agreement.parties:
        parts.append("\nParties:")
        parts.extend(f"{i}. {party_name(p)}" for i, p in enumerate(agreement.parties, start=1))

    provisions = agreement.provisions
    if provisions:
        parts.append("\nKey Provisions:")
        if provisions.effective_date:
            parts.append(f"Effective Date: {format_date(provisions.effective_date)}")
        if provisions.expiration_date:
            parts.append(f"Expiration Date: {format_date(provisions.expiration_date)}")
        if provisions.total_agreement_value:
            parts.append(f"Total Value: {provisions.total_agreement_value}")

    if agreement.summary:
        parts.append(f"\nSummary:\n{agreement.summary}")
    if agreement.metadata and agreement.metadata.created_at:
        parts.append(f"\nCreated: {format_datetime(agreement.metadata.created_at)}")
    return "\n".join(parts)


def auth_status_text(user: UserInfo) -> str:
    account = user.default_account
    return "\n".join([
        "Authentication Status: VALID",
        "",
        f"User: {user.name or 'Unknown'}",
        f"Email: {user.email or 'Unknown'}",
        f"Default Account: {(account and account.account_name) or 'Unknown'}",
        f"Account ID: {(account and account.account_id) or 'Unknown'}",
    ])


# ===== Search =====

def search_terms(query: str) -> List[str]:
    return [t for t in (query or "").lower().split() if t]


def searchable_text(agreement: Agreement) -> str:
    fields = [
        agreement.title or "",
        agreement.summary or "",
        agreement.type or "",
        agreement.category or "",
        agreement.file_name or "",
    ]
    fields.extend(f"{p.preferred_name or ''} {p.name_in_agreement or ''}" for p in agreement.parties or [])
    return " ".join(fields).lower()


def matches_query(agreement: Agreement, terms: List[str]) -> bool:
    """Any term appearing anywhere in the searchable text is a match."""
    haystack = searchable_text(agreement)
    return any(term in haystack for term in terms)


def search_results(agreements: List[Agreement]) -> Dict[str, List[Dict[str, str]]]:
    results = []
    for a in agreements:
        if a.summary:
            snippet = _truncate(a.summary, SNIPPET_CHARS)
        else:
            snippet = f"{a.type or 'Agreement'} - {a.category or 'Unknown category'}"
        results.append({"id": a.id, "title": agreement_title(a), "text": snippet, "url": agreement_url(a.id)})
    return {"results": results}


def fetch_result(agreement: Agreement, raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": agreement.id,
        "title": agreement_title(agreement),
        "content": agreement_content_text(agreement),
        "url": agreement_url(agreement.id),
        "metadata": {
            "type": agreement.type,
            "category": agreement.category,
            "status": agreement.status,
            "file_name": agreement.file_name,
            "created_at": agreement.metadata.created_at if agreement.metadata else None,
            "parties_count": len(agreement.parties or []),
            "has_provisions": agreement.provisions is not None,
            "raw_data": raw,
        },
    }


# ===== Tool response envelopes =====

def tool_response(text: str, annotation: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    block: Dict[str, Any] = {"type": "text", "text": text}
    if annotation is not None:
        block["annotation"] = annotation
    return {"content": [block]}


def connector_response(data: Dict[str, Any], **annotation: Any) -> Dict[str, Any]:
    """Wrap a connector-shaped payload as JSON text, keeping the object itself in the annotation."""
    return tool_response(json.dumps(data, indent=2, default=str), {"chatgpt_format": data, **annotation})


def tool_error_response(error: str, description: Optional[str] = None, tool: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    body = {"error": error}
    if description:
        body["error_description"] = description
    if tool:
        body["tool"] = tool
    annotation: Dict[str, Any] = {"error": True}
    if tool:
        annotation["tool"] = tool
    annotation.update(extra)
    return tool_response(json.dumps(body, indent=2), annotation)
