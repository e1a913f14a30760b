"""
Pytest configuration and fixtures.
"""
from datetime import datetime, timedelta, timezone as dt_timezone

import pytest

from consents.conformance import StrictConformance
from consents.decisions import DecisionMetadata
from consents.lifecycle import ConsentLifecycleManager
from registry.providers import StaticRegistryProvider
from registry.reference import RegistryReference

NOW = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=dt_timezone.utc)

PURPOSE_NAMES = {
	1: "Store and/or access information on a device",
	2: "Use limited data to select advertising",
	3: "Create profiles for personalised advertising",
	4: "Use profiles to select personalised advertising",
	5: "Create profiles to personalise content",
	6: "Use profiles to select personalised content",
	7: "Measure advertising performance",
	8: "Measure content performance",
	9: "Understand audiences through statistics",
	10: "Develop and improve services",
	11: "Use limited data to select content",
}


@pytest.fixture(autouse=True)
def consent_settings(settings):
	"""Keep tests off Celery and the network."""
	settings.CONSENT_AUDIT_SINK = "consents.audit.LogAuditSink"
	settings.CONSENT_CONFORMANCE_MODE = "strict"
	settings.CONSENT_STORE_TIMEOUT_MS = None
	settings.CONSENT_ONLY_PURPOSES = [1, 3, 4, 5, 6]
	settings.VENDOR_LIST_URLS = ["https://gvl.test/v3/vendor-list.json", "https://gvl.test/v2/vendor-list.json"]
	return settings


@pytest.fixture
def gvl():
	"""A small Global Vendor List document (v3 layout)."""
	return {
		"gvlSpecificationVersion": 3,
		"vendorListVersion": 42,
		"tcfPolicyVersion": 4,
		"lastUpdated": "2024-04-25T16:00:00Z",
		"purposes": {str(pid): {"id": pid, "name": name, "description": ""} for pid, name in PURPOSE_NAMES.items()},
		"specialFeatures": {
			"1": {"id": 1, "name": "Use precise geolocation data"},
			"2": {"id": 2, "name": "Actively scan device characteristics for identification"},
		},
		"vendors": {
			"1": {
				"id": 1, "name": "Exponential Interactive, Inc d/b/a VDX.tv",
				"purposes": [1, 3, 4], "legIntPurposes": [2, 7], "flexiblePurposes": [2],
				"specialFeatures": [], "policyUrl": "https://vdx.tv/privacy/",
			},
			"2": {
				"id": 2, "name": "Captify Technologies Limited",
				"purposes": [1, 2], "legIntPurposes": [], "specialFeatures": [1],
			},
			"755": {
				"id": 755, "name": "Google Advertising Products",
				"purposes": [1, 3, 4], "legIntPurposes": [2, 7, 10], "specialFeatures": [],
			},
			"9": {
				"id": 9, "name": "Retired Ads Ltd", "purposes": [1], "legIntPurposes": [8],
				"deletedDate": "2023-01-01T00:00:00Z",
			},
		},
	}


@pytest.fixture
def registry(gvl):
	return RegistryReference.from_gvl(gvl)


@pytest.fixture
def metadata(registry):
	return DecisionMetadata.from_settings(now=NOW, vendor_list_version=registry.version)


@pytest.fixture
def vendor_list(db, gvl):
	from registry.models import VendorList
	return VendorList.update_from_gvl(gvl, source="https://gvl.test/v3/vendor-list.json")


@pytest.fixture
def domain(db):
	from domains.models import Domain
	return Domain.objects.create(url="https://news.example.com", custom_purposes={"1": "Newsletter personalisation"})


class RecordingSink:
	def __init__(self):
		self.events = []

	def record(self, event):
		self.events.append(event)


class Clock:
	"""Returns a later time on every call."""

	def __init__(self, start=NOW, step=timedelta(minutes=1)):
		self.current = start
		self.step = step

	def __call__(self):
		now = self.current
		self.current += self.step
		return now


@pytest.fixture
def audit_sink():
	return RecordingSink()


@pytest.fixture
def manager(registry, audit_sink):
	return ConsentLifecycleManager(
		registry_provider=StaticRegistryProvider(registry),
		audit_sink=audit_sink,
		conformance=StrictConformance(),
		clock=Clock(),
	)
