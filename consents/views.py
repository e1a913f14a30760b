from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter
from ipaddress import ip_address, IPv4Address, IPv6Address
import logging

from domains.models import Domain
from registry.providers import RegistryUnavailable
from . import services
from .errors import BitfieldError, NotFound, ParseError, TranslationError, ValidationFailed
from .lifecycle import RequestMetadata
from .serializers import (
	ConsentRecordSerializer,
	DecodeSerializer,
	HistorySerializer,
	SiteUserSerializer,
	SubmitConsentSerializer,
	VerifyConsentSerializer,
)
from .translator import DecisionFormat, FormattedDecisions

log = logging.getLogger(__name__)


def truncate_ip(ip_str: str) -> str:
	"""Return anonymized IP (e.g., 192.168.54.203 -> 192.168.54.0)."""
	if not ip_str:
		return ""
	try:
		ip_obj = ip_address(ip_str)
		if isinstance(ip_obj, IPv4Address):
			parts = ip_str.split(".")
			return ".".join(parts[:3] + ["0"])
		elif isinstance(ip_obj, IPv6Address):
			hextets = ip_str.split(":")
			return ":".join(hextets[:3]) + "::"
	except ValueError:
		pass
	return ""  # not an IP, nothing worth keeping


def device_type(user_agent: str) -> str:
	ua = (user_agent or "").lower()
	if not ua:
		return ""
	if "ipad" in ua or "tablet" in ua:
		return "tablet"
	if "mobi" in ua or "android" in ua or "iphone" in ua:
		return "mobile"
	return "desktop"


def request_metadata(request, language="", region="") -> RequestMetadata:
	xff = request.META.get("HTTP_X_FORWARDED_FOR")
	real_ip = xff.split(",")[0].strip() if xff else request.META.get("REMOTE_ADDR")
	user_agent = request.META.get("HTTP_USER_AGENT", "")
	if not language:
		language = request.META.get("HTTP_ACCEPT_LANGUAGE", "").split(",")[0].strip()
	return RequestMetadata(
		truncated_ip=truncate_ip(real_ip) or None,
		user_agent=user_agent,
		language=language[:35],
		device_type=device_type(user_agent),
		region=region,
	)


def error_response(error, status_code):
	return Response({"success": False, **error.as_dict()}, status=status_code)


def invalid_request(errors):
	return Response({"success": False, "errors": errors}, status=status.HTTP_400_BAD_REQUEST)


def get_domain(embed_key):
	try:
		return Domain.objects.get(embed_key=embed_key)
	except Domain.DoesNotExist:
		return None


def invalid_embed_key():
	return Response(
		{"success": False, "error": "Invalid embed_key"},
		status=status.HTTP_400_BAD_REQUEST,
	)


def id_list(params, name):
	"""Accepts ?purposes=1,2 as well as ?purposes=1&purposes=2."""
	values = []
	for raw in params.getlist(name):
		values += [v.strip() for v in raw.split(",") if v.strip()]
	return values


@extend_schema(
	request=SubmitConsentSerializer,
	responses={201: {"type": "object"}},
	description="Record a user's consent decisions; any previous valid consent for the user is superseded",
	tags=["Consents"]
)
@api_view(["POST"])
@permission_classes([AllowAny])
def create_consent(request):
	"""
	Stores the decisions sent by the embedded banner and returns the TC string.
	The site is looked up by embed_key; IP is anonymized before it is stored.
	"""
	serializer = SubmitConsentSerializer(data=request.data)
	if not serializer.is_valid():
		return invalid_request(serializer.errors)
	data = serializer.validated_data

	domain = get_domain(data["embed_key"])
	if domain is None:
		return invalid_embed_key()

	decisions = FormattedDecisions(DecisionFormat(data["format"]), data["decisions"])
	try:
		record, tc_string = services.submit_consent(
			domain,
			data["user_id"],
			decisions,
			request_metadata(request, data["language"], data["region"]),
		)
	except (ValidationFailed, TranslationError) as e:
		return error_response(e, status.HTTP_400_BAD_REQUEST)
	except BitfieldError as e:
		log.warning(f"Consent for {domain.url} cannot be encoded: {e}")
		return error_response(e, status.HTTP_400_BAD_REQUEST)
	except RegistryUnavailable as e:
		log.error(f"Consent for {domain.url} rejected, no vendor list: {e}")
		return error_response(e, status.HTTP_503_SERVICE_UNAVAILABLE)

	return Response(
		{
			"success": True,
			"consent_id": str(record.consent_id),
			"tc_string": tc_string,
			"domain": domain.url,
			"conformance_mode": record.conformance_mode,
			"timestamp": record.valid_from,
		},
		status=status.HTTP_201_CREATED,
	)


@extend_schema(
	parameters=[
		OpenApiParameter(name="embed_key", type=str, location=OpenApiParameter.QUERY, required=True),
		OpenApiParameter(name="user_id", type=str, location=OpenApiParameter.QUERY, required=True),
	],
	responses={200: ConsentRecordSerializer},
	description="The user's current valid consent record",
	tags=["Consents"]
)
@api_view(["GET"])
@permission_classes([AllowAny])
def current_consent(request):
	serializer = SiteUserSerializer(data=request.query_params)
	if not serializer.is_valid():
		return invalid_request(serializer.errors)

	domain = get_domain(serializer.validated_data["embed_key"])
	if domain is None:
		return invalid_embed_key()

	try:
		record = services.get_current_consent(domain, serializer.validated_data["user_id"])
	except NotFound as e:
		return error_response(e, status.HTTP_404_NOT_FOUND)

	return Response({"success": True, "consent": ConsentRecordSerializer(record).data})


@extend_schema(
	parameters=[
		OpenApiParameter(name="embed_key", type=str, location=OpenApiParameter.QUERY, required=True),
		OpenApiParameter(name="user_id", type=str, location=OpenApiParameter.QUERY, required=True),
		OpenApiParameter(name="purposes", type=str, location=OpenApiParameter.QUERY, required=False),
		OpenApiParameter(name="vendors", type=str, location=OpenApiParameter.QUERY, required=False),
	],
	responses={200: {"type": "object"}},
	description="Check whether the user allowed every requested purpose and vendor",
	tags=["Consents"]
)
@api_view(["GET"])
@permission_classes([AllowAny])
def verify_consent(request):
	params = request.query_params
	serializer = VerifyConsentSerializer(data={
		"embed_key": params.get("embed_key"),
		"user_id": params.get("user_id"),
		"purposes": id_list(params, "purposes"),
		"vendors": id_list(params, "vendors"),
	})
	if not serializer.is_valid():
		return invalid_request(serializer.errors)
	data = serializer.validated_data

	domain = get_domain(data["embed_key"])
	if domain is None:
		return invalid_embed_key()

	result = services.verify_consent(domain, data["user_id"], data["purposes"], data["vendors"])
	return Response({"success": True, **result.as_dict()})


@extend_schema(
	request=SiteUserSerializer,
	responses={200: {"type": "object"}},
	description="Revoke the user's current consent",
	tags=["Consents"]
)
@api_view(["POST"])
@permission_classes([AllowAny])
def revoke_consent(request):
	serializer = SiteUserSerializer(data=request.data)
	if not serializer.is_valid():
		return invalid_request(serializer.errors)

	domain = get_domain(serializer.validated_data["embed_key"])
	if domain is None:
		return invalid_embed_key()

	try:
		services.revoke_consent(domain, serializer.validated_data["user_id"])
	except NotFound as e:
		return error_response(e, status.HTTP_404_NOT_FOUND)

	return Response({"success": True, "revoked": True})


@extend_schema(
	request=DecodeSerializer,
	responses={200: {"type": "object"}},
	description="Decode a TC string into client-format decisions",
	tags=["Consents"]
)
@api_view(["POST"])
@permission_classes([AllowAny])
def decode_consent(request):
	serializer = DecodeSerializer(data=request.data)
	if not serializer.is_valid():
		return invalid_request(serializer.errors)

	try:
		decisions = services.decode_wire_string(serializer.validated_data["tc_string"])
	except ParseError as e:
		return error_response(e, status.HTTP_400_BAD_REQUEST)

	return Response({"success": True, "decisions": decisions})


@extend_schema(
	parameters=[
		OpenApiParameter(name="embed_key", type=str, location=OpenApiParameter.QUERY, required=True),
		OpenApiParameter(name="user_id", type=str, location=OpenApiParameter.QUERY, required=True),
		OpenApiParameter(name="start", type=str, location=OpenApiParameter.QUERY, required=False),
		OpenApiParameter(name="end", type=str, location=OpenApiParameter.QUERY, required=False),
	],
	responses={200: ConsentRecordSerializer(many=True)},
	description="Every consent record for the user, oldest first, optionally limited to a time window",
	tags=["Consents"]
)
@api_view(["GET"])
@permission_classes([AllowAny])
def consent_history(request):
	serializer = HistorySerializer(data=request.query_params)
	if not serializer.is_valid():
		return invalid_request(serializer.errors)
	data = serializer.validated_data

	domain = get_domain(data["embed_key"])
	if domain is None:
		return invalid_embed_key()

	records = services.get_history(domain, data["user_id"], data["start"], data["end"])
	return Response({
		"success": True,
		"count": len(records),
		"records": ConsentRecordSerializer(records, many=True).data,
	})
