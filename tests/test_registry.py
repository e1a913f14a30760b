import json
from datetime import timedelta
from unittest import mock

import pytest
import requests
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from registry.models import VendorList
from registry.providers import (
	DatabaseRegistryProvider,
	RegistryUnavailable,
	StaticRegistryProvider,
	fetch_global_vendor_list,
)
from registry.reference import RegistryReference
from registry.tasks import refresh_vendor_list


def gvl_response(data):
	resp = mock.Mock()
	resp.json.return_value = data
	resp.raise_for_status.return_value = None
	return resp


def test_reference_from_gvl(registry):
	assert registry.version == 42
	assert registry.purpose_name(1) == "Store and/or access information on a device"
	assert registry.has_special_feature(2)
	assert registry.vendor_name(755) == "Google Advertising Products"
	assert registry.vendors[1].policy_url == "https://vdx.tv/privacy/"
	assert registry.vendors[1].flexible_purpose_ids == frozenset({2})


def test_deleted_vendors_are_left_out(registry):
	assert not registry.has_vendor(9)
	assert sorted(registry.vendors) == [1, 2, 755]


def test_purposes_without_legitimate_interest_vendors_are_consent_only(registry):
	assert not registry.is_consent_only(2)
	assert not registry.is_consent_only(10)
	# only the deleted vendor 9 claimed purpose 8
	assert registry.is_consent_only(8)
	assert registry.is_consent_only(1)


def test_reference_is_read_only(registry):
	with pytest.raises(TypeError):
		registry.purposes[99] = None
	with pytest.raises(AttributeError):
		registry.version = 43


def test_vendor_legitimate_interest_claims(registry):
	assert registry.vendors[1].claims_legitimate_interest
	assert not registry.vendors[2].claims_legitimate_interest
	assert registry.vendors[1].covers_purposes([1, 2, 7])
	assert not registry.vendors[2].covers_purposes([7])


def test_static_provider_serves_its_reference(registry):
	assert StaticRegistryProvider(registry).get_latest_registry(timeout=1) is registry


def test_fetch_falls_back_to_next_url(gvl, settings):
	calls = []

	def fake_get(url, timeout):
		calls.append((url, timeout))
		if "v3" in url:
			raise requests.ConnectionError("v3 down")
		return gvl_response(gvl)

	with mock.patch("registry.providers.requests.get", side_effect=fake_get):
		data, source = fetch_global_vendor_list(timeout=2)

	assert data["vendorListVersion"] == 42
	assert source == "https://gvl.test/v2/vendor-list.json"
	assert [t for _, t in calls] == [2, 2]


def test_fetch_rejects_documents_that_are_not_vendor_lists():
	with mock.patch("registry.providers.requests.get", return_value=gvl_response({"hello": "world"})):
		with pytest.raises(RegistryUnavailable):
			fetch_global_vendor_list()


@pytest.mark.django_db
def test_update_from_gvl_keeps_one_current_version(gvl):
	VendorList.update_from_gvl(gvl, source="file")
	VendorList.update_from_gvl({**gvl, "vendorListVersion": 43}, source="file")

	assert VendorList.get_latest().version == 43
	assert VendorList.objects.get(version=42).status == "outdated"
	assert VendorList.objects.filter(status="current").count() == 1


@pytest.mark.django_db
def test_version_diff(gvl):
	VendorList.update_from_gvl(gvl)
	newer = json.loads(json.dumps(gvl))
	newer["vendorListVersion"] = 43
	del newer["vendors"]["2"]
	newer["vendors"]["1"]["name"] = "VDX.tv"
	newer["vendors"]["800"] = {"id": 800, "name": "New Vendor", "purposes": [1]}
	VendorList.update_from_gvl(newer)

	assert VendorList.version_diff(42, 43) == {"vendors": {"added": [800], "removed": [2], "modified": [1]}}
	assert VendorList.version_diff(42, 99) is None


@pytest.mark.django_db
def test_database_provider_uses_stored_list_without_fetching(vendor_list):
	with mock.patch("registry.providers.requests.get") as get:
		reference = DatabaseRegistryProvider().get_latest_registry()
	get.assert_not_called()
	assert reference.version == 42
	assert reference.has_vendor(755)


@pytest.mark.django_db
def test_database_provider_fetches_when_nothing_is_stored(gvl):
	with mock.patch("registry.providers.requests.get", return_value=gvl_response(gvl)):
		reference = DatabaseRegistryProvider().get_latest_registry(timeout=3)
	assert reference.version == 42
	assert VendorList.objects.get().fetched_from == "https://gvl.test/v3/vendor-list.json"


@pytest.mark.django_db
def test_database_provider_serves_stale_list_when_refresh_fails(vendor_list, caplog):
	VendorList.objects.filter(pk=vendor_list.pk).update(fetched_at=timezone.now() - timedelta(days=30))

	with mock.patch("registry.providers.requests.get", side_effect=requests.ConnectionError("down")):
		reference = DatabaseRegistryProvider().get_latest_registry()

	assert reference.version == 42
	assert "Serving stale GVL v42" in caplog.text


@pytest.mark.django_db
def test_database_provider_without_any_list_is_unavailable():
	with mock.patch("registry.providers.requests.get", side_effect=requests.Timeout("slow")):
		with pytest.raises(RegistryUnavailable):
			DatabaseRegistryProvider().get_latest_registry()
	with pytest.raises(RegistryUnavailable):
		DatabaseRegistryProvider(fetch=False).get_latest_registry()


@pytest.mark.django_db
def test_refresh_task_reports_result(gvl):
	with mock.patch("registry.providers.requests.get", return_value=gvl_response(gvl)):
		assert refresh_vendor_list() == {"refreshed": True, "version": 42, "vendors": 4}

	with mock.patch("registry.providers.requests.get", side_effect=requests.ConnectionError("down")):
		result = refresh_vendor_list()
	assert result["refreshed"] is False


@pytest.mark.django_db
def test_load_vendor_list_command(gvl, tmp_path):
	path = tmp_path / "vendor-list.json"
	path.write_text(json.dumps(gvl), encoding="utf-8")

	call_command("load_vendor_list", file=str(path))
	assert VendorList.get_latest().version == 42

	bad = tmp_path / "bad.json"
	bad.write_text(json.dumps({"vendors": {}}), encoding="utf-8")
	with pytest.raises(CommandError):
		call_command("load_vendor_list", file=str(bad))


def test_reference_summary(registry):
	summary = registry.summary()
	assert summary["version"] == 42
	assert summary["vendorCount"] == 3
	assert summary["specialFeatures"][1] == "Use precise geolocation data"


def test_reference_built_by_hand():
	reference = RegistryReference.build(7)
	assert reference.version == 7
	assert not reference.has_purpose(1)
