from django.urls import include, path

from transactions import views

urlpatterns = [
    path('hc', views.health_check, name='health-check'),
    path('api/', include('transactions.urls')),
]
