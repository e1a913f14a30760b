from django.urls import path
from . import views

urlpatterns = [
	path("latest/", views.latest_registry, name="latest_registry"),  # GET /api/registry/latest/
	path("changes/", views.version_changes, name="registry_version_changes"),  # GET /api/registry/changes/?old=&new=
]
