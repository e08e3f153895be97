"""
URLs do app notifications
"""

from django.urls import path

from apps.notifications import webhooks

app_name = "notifications"

urlpatterns = [
    path("sns/<slug:company_slug>/", webhooks.sns_webhook, name="sns_webhook"),
]
