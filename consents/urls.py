from django.urls import path
from . import views

urlpatterns = [
	path("create/", views.create_consent, name="create_consent"),  # POST /api/consents/create/
	path("current/", views.current_consent, name="current_consent"),  # GET /api/consents/current/
	path("verify/", views.verify_consent, name="verify_consent"),  # GET /api/consents/verify/?purposes=1,2
	path("revoke/", views.revoke_consent, name="revoke_consent"),  # POST /api/consents/revoke/
	path("decode/", views.decode_consent, name="decode_consent"),  # POST /api/consents/decode/
	path("history/", views.consent_history, name="consent_history"),
]
