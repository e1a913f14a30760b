from django.contrib import admin
from .models import ConsentRecord


@admin.register(ConsentRecord)
class ConsentRecordAdmin(admin.ModelAdmin):
	list_display = ("consent_id", "domain", "user_id", "status", "valid_from", "valid_until", "conformance_mode")
	search_fields = ("domain__url", "user_id", "truncated_ip")
	list_filter = ("status", "conformance_mode", "device_type", "created_at")
	# Status changes go through the lifecycle manager, never the admin
	readonly_fields = (
		"consent_id", "status", "valid_from", "valid_until", "tc_string",
		"decisions", "decision_metadata", "conformance_mode", "created_at",
	)
