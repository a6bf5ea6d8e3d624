# entities/urls.py
"""URL configuration for the entity API."""

from django.urls import path

from .views import EntityCrudView

urlpatterns = [
    path("", EntityCrudView.as_view(), name="entity-crud"),
]
