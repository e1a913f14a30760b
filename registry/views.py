from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema

from .models import VendorList
from .providers import DatabaseRegistryProvider, RegistryUnavailable


@extend_schema(
	responses={200: {"type": "object"}},
	description="Summary of the current Global Vendor List (purposes, special features, vendor count)",
	tags=["Registry"]
)
@api_view(["GET"])
@permission_classes([AllowAny])
def latest_registry(request):
	try:
		reference = DatabaseRegistryProvider().get_latest_registry()
	except RegistryUnavailable as e:
		return Response(
			{"success": False, **e.as_dict()},
			status=status.HTTP_503_SERVICE_UNAVAILABLE,
		)
	return Response({"success": True, "registry": reference.summary()})


@extend_schema(
	responses={200: {"type": "object"}},
	description="Vendors added, removed and modified between two stored GVL versions",
	tags=["Registry"]
)
@api_view(["GET"])
@permission_classes([AllowAny])
def version_changes(request):
	try:
		old_version = int(request.query_params.get("old"))
		new_version = int(request.query_params.get("new"))
	except (TypeError, ValueError):
		return Response(
			{"success": False, "error": "old and new must be integer versions"},
			status=status.HTTP_400_BAD_REQUEST,
		)

	changes = VendorList.version_diff(old_version, new_version)
	if changes is None:
		return Response({"success": False, "error": "Vendor list version not found"}, status=status.HTTP_404_NOT_FOUND)
	return Response({"success": True, "changes": changes})
