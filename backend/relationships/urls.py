# relationships/urls.py
"""URL configuration for the relationship API."""

from django.urls import path

from .views import RelationshipCrudView

urlpatterns = [
    path("", RelationshipCrudView.as_view(), name="relationship-crud"),
]
