"""Tests for Loyalman admin and management command."""

from datetime import timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.contrib.admin.sites import site
from django.core.management import call_command
from django.test import RequestFactory
from django.urls import reverse
from django.utils import timezone

from loyalman.admin import CustomerAdmin, PointsEntryAdmin, RedemptionRequestAdmin
from loyalman.models import Customer, EntryKind, PointsEntry, RedemptionRequest


pytestmark = pytest.mark.django_db


class TestAdmin:
    """Ledger and requests are read-only in the admin."""

    def test_changelists_render(self, admin_client, rich_customer, reward):
        for name in ("customer", "pointsentry", "reward", "redemptionrequest", "loyaltyprogram"):
            response = admin_client.get(reverse(f"admin:loyalman_{name}_changelist"))
            assert response.status_code == 200

    def test_customer_change_page(self, admin_client, rich_customer):
        url = reverse("admin:loyalman_customer_change", args=[rich_customer.pk])
        response = admin_client.get(url)

        assert response.status_code == 200
        assert b"Welcome bonus for new customer" in response.content

    def test_ledger_is_read_only(self, admin_user, customer):
        request = RequestFactory().get("/")
        request.user = admin_user
        entry_admin = PointsEntryAdmin(PointsEntry, site)
        request_admin = RedemptionRequestAdmin(RedemptionRequest, site)

        for model_admin in (entry_admin, request_admin):
            assert not model_admin.has_add_permission(request)
            assert not model_admin.has_change_permission(request)
            assert not model_admin.has_delete_permission(request)

    def test_badges(self, customer):
        customer_admin = CustomerAdmin(Customer, site)
        entry_admin = PointsEntryAdmin(PointsEntry, site)
        entry = PointsEntry.objects.get(customer=customer)

        assert "Bronze" in customer_admin.tier_badge(customer)
        assert "+100" in entry_admin.points_display(entry)


class TestExpireCommand:
    """loyalman_expire_points runs the reaper per program."""

    def test_single_program(self, expiring_engine):
        expiring_engine.directory.enroll("C-1", first_name="A")
        expiring_engine.directory.record_purchase(
            "C-1", "INV-1", Decimal("250"), now=timezone.now() - timedelta(days=40)
        )
        out = StringIO()

        call_command("loyalman_expire_points", "--program", "expiring", stdout=out)

        assert "expiring: 250 points expired" in out.getvalue()
        assert expiring_engine.ledger.balance_of("C-1") == 0
        assert PointsEntry.objects.filter(kind=EntryKind.EXPIRED).count() == 1

    def test_all_enabled_programs(self, expiring_engine, engine, customer):
        engine.config.update(is_enabled=False)
        out = StringIO()

        call_command("loyalman_expire_points", stdout=out)

        output = out.getvalue()
        assert "expiring: 0 points expired" in output
        assert "test-store" not in output
        assert "Expired 0 points in 1 programs." in output
