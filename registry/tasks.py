# registry/tasks.py
from celery import shared_task
import logging

log = logging.getLogger(__name__)


@shared_task
def refresh_vendor_list():
	"""
	Download the latest Global Vendor List and make it current.
	Runs weekly via Celery Beat.
	"""
	from registry.providers import refresh_vendor_list as _refresh, RegistryUnavailable

	try:
		vendor_list = _refresh()
	except RegistryUnavailable as e:
		log.error(f"Scheduled GVL refresh failed: {e}")
		return {"refreshed": False, "error": str(e)}

	vendor_count = len(vendor_list.data.get("vendors") or {})
	log.info(f"GVL v{vendor_list.version} is current ({vendor_count} vendors)")
	return {"refreshed": True, "version": vendor_list.version, "vendors": vendor_count}
