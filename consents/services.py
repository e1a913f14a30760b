# consents/services.py
"""
Entry points for callers outside the consents app (views, tasks, shell).
Each call builds a lifecycle manager from settings unless one is passed in.
"""
from typing import Optional

from .lifecycle import ConsentLifecycleManager, RequestMetadata


def get_manager(manager: Optional[ConsentLifecycleManager] = None) -> ConsentLifecycleManager:
	return manager or ConsentLifecycleManager()


def submit_consent(
		domain, user_id, decisions, request_metadata: Optional[RequestMetadata] = None, timeout=None, manager=None
):
	"""Returns (record, tc_string); raises ValidationFailed on unknown ids or bad legal basis."""
	return get_manager(manager).create(domain, user_id, decisions, request_metadata, timeout=timeout)


def get_current_consent(domain, user_id, manager=None):
	return get_manager(manager).current(domain, user_id)


def verify_consent(domain, user_id, purpose_ids=(), vendor_ids=(), manager=None):
	return get_manager(manager).verify(domain, user_id, purpose_ids, vendor_ids)


def revoke_consent(domain, user_id, manager=None):
	get_manager(manager).revoke(domain, user_id)


def decode_wire_string(tc_string, manager=None) -> dict:
	return get_manager(manager).decode(tc_string)


def get_history(domain, user_id, start=None, end=None, manager=None):
	return get_manager(manager).history(domain, user_id, start, end)
