from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from ..models.records import BoothRecord
from ..models.schedule import RegistrationCandidate

"""Attendee identity resolution.

Registration candidates are collapsed into unique people by the case-insensitive
(first name, last name, organization) key. The first spelling seen wins for the
stored name.

Vendor staff classification has two sources:
1. the parser's own ``is_vendor`` flag (person listed under the booth's first company)
2. a failsafe: the candidate's organization equals the company name stored for the
   booth they are listed under

When the failsafe fires it wins, even if the parser said otherwise.
"""

__all__ = [
    "AttendeeIdentity",
    "booth_company_map",
    "is_vendor_candidate",
    "collapse_identities",
]


@dataclass
class AttendeeIdentity:
    first_name: str
    last_name: str
    organization: str
    is_vendor: bool = False


def booth_company_map(booths: Iterable[BoothRecord]) -> dict[str, str]:
    """physical id (lower) -> persisted company name (lower)."""
    return {
        b.physical_id.lower(): b.company_name.lower()
        for b in booths
        if b.company_name
    }


def is_vendor_candidate(candidate: RegistrationCandidate, booth_companies: Mapping[str, str]) -> bool:
    booth_id = candidate.expected_booth_physical_id
    if booth_id:
        company = booth_companies.get(booth_id.lower())
        if company is not None and company == candidate.organization.lower():
            return True
    return candidate.is_vendor


def collapse_identities(
    candidates: Iterable[RegistrationCandidate],
    booth_companies: Mapping[str, str],
) -> dict[str, AttendeeIdentity]:
    """Unique identities keyed by ``identity_key``, insertion ordered.

    An identity is vendor staff when any of its candidates is.
    """
    identities: dict[str, AttendeeIdentity] = {}
    for candidate in candidates:
        key = candidate.identity_key
        vendor = is_vendor_candidate(candidate, booth_companies)
        identity = identities.get(key)
        if identity is None:
            identities[key] = AttendeeIdentity(
                first_name=candidate.first_name,
                last_name=candidate.last_name,
                organization=candidate.organization,
                is_vendor=vendor,
            )
        elif vendor:
            identity.is_vendor = True
    return identities
