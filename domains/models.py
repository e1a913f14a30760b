# domains/models.py
import uuid
import secrets
import logging
from django.db import models

log = logging.getLogger(__name__)


class Domain(models.Model):
	"""A site collecting consent; the site half of every (site, user) consent pair."""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	url = models.URLField(max_length=500, unique=False)
	embed_key = models.CharField(max_length=40, unique=True, default="", blank=True)
	# Publisher custom purposes, e.g. {"1": "Newsletter personalisation"}
	custom_purposes = models.JSONField(default=dict, blank=True)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	def save(self, *args, **kwargs):
		if not self.embed_key:
			self.embed_key = secrets.token_urlsafe(24)[:40]
		return super().save(*args, **kwargs)

	def rotate_embed_key(self):
		self.embed_key = secrets.token_urlsafe(24)[:40]
		self.save(update_fields=["embed_key", "updated_at"])
		return self.embed_key

	def get_custom_purposes(self) -> dict:
		"""Custom purposes keyed by integer identifier."""
		purposes = {}
		for key, name in (self.custom_purposes or {}).items():
			try:
				purposes[int(key)] = str(name)
			except (TypeError, ValueError):
				log.warning(f"Ignoring custom purpose with non-numeric id {key!r} on {self.url}")
		return purposes

	def __str__(self):
		return self.url
