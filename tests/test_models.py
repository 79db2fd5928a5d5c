from __future__ import annotations

from datetime import datetime, timezone

import pytest

from rentify.models import (
    Apartment,
    Application,
    Complaint,
    ComplaintStatus,
    PartyRef,
    Role,
    User,
    parse_complaint_status,
    parse_role,
)


def test_parse_role_accepts_known_values_case_insensitively() -> None:
    assert parse_role("Landlord") is Role.LANDLORD
    assert parse_role(" admin ") is Role.ADMIN

    with pytest.raises(ValueError):
        parse_role("superuser")


def test_parse_complaint_status_rejects_unknown_values() -> None:
    assert parse_complaint_status("RESOLVED") is ComplaintStatus.RESOLVED
    with pytest.raises(ValueError):
        parse_complaint_status("closed")


def test_user_with_unknown_role_defaults_to_tenant() -> None:
    user = User.from_record({"id": "u1", "full_name": "Ghost", "email": "g@example.com", "role": "owner"})

    assert user.role is Role.TENANT
    assert user.is_active is True
    assert not user.is_admin


def test_user_requires_identifier() -> None:
    with pytest.raises(ValueError):
        User.from_record({"full_name": "Nobody", "role": "tenant"})


def test_apartment_parses_joined_landlord_and_timestamps() -> None:
    apartment = Apartment.from_record(
        {
            "id": "a1",
            "title": "Loft",
            "address": "1 Main St",
            "city": "Manila",
            "monthly_rent": "15000.50",
            "type": "Studio",
            "is_published": 1,
            "landlord_id": "u2",
            "landlord": {"full_name": "Maria", "email": "maria@example.com"},
            "created_at": "2024-05-01T09:00:00Z",
        }
    )

    assert apartment.monthly_rent == 15000.5
    assert apartment.type == "studio"
    assert apartment.is_published is True
    assert apartment.landlord == PartyRef(full_name="Maria", email="maria@example.com")
    assert apartment.created_at == datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def test_apartment_without_landlord_row_keeps_null_reference() -> None:
    apartment = Apartment.from_record({"id": "a2", "title": "Orphan", "landlord": None, "monthly_rent": None})

    assert apartment.landlord is None
    assert apartment.monthly_rent == 0.0
    assert apartment.is_published is False


def test_party_ref_accepts_single_element_list() -> None:
    ref = PartyRef.from_record([{"full_name": "Ana", "email": "ana@example.com"}])

    assert ref is not None
    assert ref.full_name == "Ana"
    assert PartyRef.from_record([]) is None


def test_complaint_defaults_status_and_parses_resolved_at() -> None:
    complaint = Complaint.from_record(
        {
            "id": "c1",
            "subject": "Leak",
            "description": "Kitchen sink",
            "status": None,
            "resolved_at": "2024-05-02T10:00:00+00:00",
        }
    )

    assert complaint.status is ComplaintStatus.OPEN
    assert complaint.resolved_at == datetime(2024, 5, 2, 10, 0, tzinfo=timezone.utc)
    assert complaint.complainant is None


def test_application_defaults_to_pending() -> None:
    application = Application.from_record({"id": "app-1", "apartment_id": "a1", "tenant_id": "u1"})

    assert application.status == "pending"
    assert application.apartment_id == "a1"
    assert application.created_at is None
