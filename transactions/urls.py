from django.urls import path, register_converter

from . import views


class SignedIntConverter:
    """Like Django's ``int`` converter but also matches negatives, so the view can reject them."""

    regex = '-?[0-9]+'

    def to_python(self, value):
        return int(value)

    def to_url(self, value):
        return str(value)


register_converter(SignedIntConverter, 'signed_int')

urlpatterns = [
    path('transactions', views.create_transaction, name='create-transaction'),
    path('transactions/bulk', views.bulk_create_transactions, name='bulk-create-transactions'),
    path('transactions/<uuid:transaction_id>', views.get_transaction, name='get-transaction'),
    path('transactions/<signed_int:page>/<signed_int:page_size>', views.list_transactions, name='list-transactions'),
    path(
        'transactions/<uuid:transaction_id>/state/<str:state>',
        views.update_transaction_state,
        name='update-transaction-state',
    ),
]
