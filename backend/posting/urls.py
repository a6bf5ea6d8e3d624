# posting/urls.py
"""URL configuration for the posting API."""

from django.urls import path

from .views import DailyPostingView

urlpatterns = [
    path("daily/", DailyPostingView.as_view(), name="posting-daily"),
]
