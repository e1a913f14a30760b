from django.contrib import admin
from .models import Domain


@admin.register(Domain)
class DomainAdmin(admin.ModelAdmin):
	list_display = ("url", "embed_key", "created_at")
	search_fields = ("url", "embed_key")
	ordering = ("-created_at",)
	readonly_fields = ("embed_key", "created_at", "updated_at")
