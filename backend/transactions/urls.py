# transactions/urls.py
"""URL configuration for the transaction API."""

from django.urls import path

from .views import TransactionCrudView

urlpatterns = [
    path("", TransactionCrudView.as_view(), name="transaction-crud"),
]
