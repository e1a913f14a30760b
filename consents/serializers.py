from rest_framework import serializers
from .models import ConsentRecord
from .translator import DecisionFormat


class ConsentRecordSerializer(serializers.ModelSerializer):
	domain = serializers.CharField(source="domain.url", read_only=True)

	class Meta:
		model = ConsentRecord
		fields = [
			"consent_id",
			"domain",
			"user_id",
			"status",
			"valid_from",
			"valid_until",
			"tc_string",
			"decisions",
			"conformance_mode",
			"language",
			"device_type",
			"region",
			"created_at",
		]
		read_only_fields = fields


class SubmitConsentSerializer(serializers.Serializer):
	embed_key = serializers.CharField()
	user_id = serializers.CharField(max_length=255)
	format = serializers.ChoiceField(
		choices=[f.value for f in DecisionFormat if f != DecisionFormat.UNKNOWN],
		default=DecisionFormat.CLIENT.value,
	)
	# Omitted decisions fall back to the minimal set (purpose 1 only)
	decisions = serializers.JSONField(required=False, allow_null=True, default=None)
	language = serializers.CharField(required=False, allow_blank=True, default="")
	region = serializers.CharField(required=False, allow_blank=True, default="")


class SiteUserSerializer(serializers.Serializer):
	embed_key = serializers.CharField()
	user_id = serializers.CharField(max_length=255)


class VerifyConsentSerializer(SiteUserSerializer):
	purposes = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False, default=list)
	vendors = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False, default=list)


class HistorySerializer(SiteUserSerializer):
	start = serializers.DateTimeField(required=False, allow_null=True, default=None)
	end = serializers.DateTimeField(required=False, allow_null=True, default=None)


class DecodeSerializer(serializers.Serializer):
	tc_string = serializers.CharField(trim_whitespace=True)
