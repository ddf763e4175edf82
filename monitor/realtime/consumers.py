import json

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from monitor.models import Patient, User
from monitor.services.alerts import ALERTS_GROUP, vitals_group
from monitor.services.patients import can_access_patient


class AlertsConsumer(AsyncWebsocketConsumer):
    """Pushes alert creation and acknowledgement to connected doctors."""
    GROUP = ALERTS_GROUP

    async def connect(self):
        user = self.scope.get('user') or AnonymousUser()
        if not user.is_authenticated:
            await self.close(code=4001)
            return
        if getattr(user, 'role', None) != User.ROLE_DOCTOR:
            await self.close(code=4003)
            return
        self.user_id = user.pk
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({'type': 'welcome', 'message': 'connected'}))

    async def disconnect(self, close_code):
        if hasattr(self, 'user_id'):
            await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    def _visible(self, alert: dict) -> bool:
        return alert.get('doctor_id') in (None, self.user_id)

    # event: {"type": "alert.created", "alert": {...}}
    async def alert_created(self, event):
        alert = event.get('alert', {})
        if self._visible(alert):
            await self.send(json.dumps({'type': 'alert', 'alert': alert}))

    async def alert_acknowledged(self, event):
        alert = event.get('alert', {})
        if self._visible(alert):
            await self.send(json.dumps({'type': 'alert_acknowledged', 'alert': alert}))


@database_sync_to_async
def _patient_access(user, patient_id):
    patient = Patient.objects.filter(pk=patient_id).first()
    if patient is None:
        return None
    return can_access_patient(user, patient)


class PatientVitalsConsumer(AsyncWebsocketConsumer):
    async def connect(self):
        user = self.scope.get('user') or AnonymousUser()
        if not user.is_authenticated:
            await self.close(code=4001)
            return
        patient_id = self.scope['url_route']['kwargs']['patient_id']
        allowed = await _patient_access(user, patient_id)
        if allowed is None:
            await self.close(code=4004)
            return
        if not allowed:
            await self.close(code=4003)
            return
        self.group_name = vitals_group(patient_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, 'group_name'):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def vitals_recorded(self, event):
        await self.send(json.dumps({
            'type': 'vitals',
            'vitals': event.get('vitals', {}),
            'status': event.get('status'),
        }))
