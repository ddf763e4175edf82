from django.urls import path

from monitor.realtime.consumers import AlertsConsumer, PatientVitalsConsumer

websocket_urlpatterns = [
    path('ws/alerts/', AlertsConsumer.as_asgi()),
    path('ws/patients/<uuid:patient_id>/vitals/', PatientVitalsConsumer.as_asgi()),
]
