import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'consentguard.settings')

app = Celery('consentguard')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

# Celery Beat schedule for automated tasks
app.conf.beat_schedule = {
	# The GVL is republished weekly (Thursdays); refresh on Friday at 2 AM UTC
	'weekly-vendor-list-refresh': {
		'task': 'registry.tasks.refresh_vendor_list',
		'schedule': crontab(hour=2, minute=0, day_of_week=5),
	},
}
