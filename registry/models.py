from datetime import timedelta
from django.db import models, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .reference import RegistryReference


class VendorList(models.Model):
	"""A stored copy of one Global Vendor List version."""
	STATUS_CHOICES = [
		("current", "Current"),
		("outdated", "Outdated"),
		("error", "Error"),
	]

	version = models.PositiveIntegerField(unique=True)
	last_updated = models.DateTimeField(null=True, blank=True)  # as published in the GVL
	data = models.JSONField(default=dict)  # raw GVL document
	fetched_from = models.CharField(max_length=500, blank=True, default="")
	fetched_at = models.DateTimeField(default=timezone.now)
	status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="current")

	class Meta:
		ordering = ["-version"]
		indexes = [models.Index(fields=["status", "-version"])]

	def __str__(self):
		return f"GVL v{self.version} ({self.status})"

	def is_outdated(self, ttl_seconds: int) -> bool:
		return timezone.now() - self.fetched_at > timedelta(seconds=ttl_seconds)

	def to_reference(self) -> RegistryReference:
		return RegistryReference.from_gvl({**self.data, "vendorListVersion": self.version})

	@classmethod
	def get_latest(cls):
		return cls.objects.filter(status="current").order_by("-version").first()

	@classmethod
	def update_from_gvl(cls, data: dict, source: str = ""):
		"""
		Store a freshly downloaded GVL and make it the only current version.
		Re-fetching a version we already hold refreshes it in place.
		"""
		version = int(data["vendorListVersion"])
		published = parse_datetime(data["lastUpdated"]) if data.get("lastUpdated") else None
		with transaction.atomic():
			cls.objects.exclude(version=version).filter(status="current").update(status="outdated")
			vendor_list, _ = cls.objects.update_or_create(
				version=version,
				defaults={
					"last_updated": published,
					"data": data,
					"fetched_from": source,
					"fetched_at": timezone.now(),
					"status": "current",
				},
			)
		return vendor_list

	@classmethod
	def version_diff(cls, old_version: int, new_version: int):
		"""Vendors added, removed and modified between two stored versions."""
		old = cls.objects.filter(version=old_version).first()
		new = cls.objects.filter(version=new_version).first()
		if not old or not new:
			return None

		old_vendors = old.data.get("vendors") or {}
		new_vendors = new.data.get("vendors") or {}
		return {
			"vendors": {
				"added": sorted(int(v) for v in new_vendors.keys() - old_vendors.keys()),
				"removed": sorted(int(v) for v in old_vendors.keys() - new_vendors.keys()),
				"modified": sorted(
					int(v) for v in new_vendors.keys() & old_vendors.keys()
					if new_vendors[v] != old_vendors[v]
				),
			},
		}
