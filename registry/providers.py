# registry/providers.py
from __future__ import annotations
import logging
from typing import Optional

import requests
from django.conf import settings

from .models import VendorList
from .reference import RegistryReference

log = logging.getLogger(__name__)


class RegistryUnavailable(Exception):
	"""No vendor list could be loaded from storage or downloaded."""

	def as_dict(self) -> dict:
		return {"kind": "RegistryUnavailable", "message": str(self)}


def fetch_global_vendor_list(urls=None, timeout: Optional[float] = None) -> tuple[dict, str]:
	"""
	Download the GVL, trying each configured URL in turn.
	Returns (gvl_json, source_url).
	"""
	urls = urls or settings.VENDOR_LIST_URLS
	timeout = timeout or settings.VENDOR_LIST_FETCH_TIMEOUT
	last_error = None

	for url in urls:
		try:
			resp = requests.get(url, timeout=timeout)
			resp.raise_for_status()
			data = resp.json()
			if "vendorListVersion" not in data:
				raise ValueError("response is not a vendor list")
			log.info(f"Fetched GVL v{data['vendorListVersion']} from {url}")
			return data, url
		except (requests.RequestException, ValueError) as e:
			log.warning(f"GVL fetch from {url} failed: {e}")
			last_error = e

	raise RegistryUnavailable(f"Could not download the global vendor list: {last_error}")


def refresh_vendor_list(timeout: Optional[float] = None) -> VendorList:
	data, source = fetch_global_vendor_list(timeout=timeout)
	return VendorList.update_from_gvl(data, source=source)


class StaticRegistryProvider:
	"""Serves one fixed reference."""

	def __init__(self, reference: RegistryReference):
		self.reference = reference

	def get_latest_registry(self, timeout: Optional[float] = None) -> RegistryReference:
		return self.reference


class DatabaseRegistryProvider:
	"""
	Serves the newest stored GVL, downloading a fresh one when none is stored
	or the stored copy is older than VENDOR_LIST_TTL. A stale copy is still
	served (with a warning) when the download fails.
	"""

	def __init__(self, ttl_seconds: Optional[int] = None, fetch: bool = True):
		self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.VENDOR_LIST_TTL
		self.fetch = fetch

	def get_latest_registry(self, timeout: Optional[float] = None) -> RegistryReference:
		latest = VendorList.get_latest()

		if self.fetch and (latest is None or latest.is_outdated(self.ttl_seconds)):
			try:
				latest = refresh_vendor_list(timeout=timeout)
			except RegistryUnavailable:
				if latest is None:
					raise
				log.warning(f"Serving stale GVL v{latest.version}; refresh failed")

		if latest is None:
			raise RegistryUnavailable("No vendor list stored and fetching is disabled")
		return latest.to_reference()
