from django.contrib import admin
from .models import VendorList


@admin.register(VendorList)
class VendorListAdmin(admin.ModelAdmin):
	list_display = ("version", "status", "last_updated", "fetched_at", "fetched_from")
	list_filter = ("status",)
	ordering = ("-version",)
	readonly_fields = ("fetched_at",)
	exclude = ("data",)
