from django.urls import path

from . import views

urlpatterns = [
    path('health', views.health_view, name='health'),
    path('pricing/calculate', views.calculate_pricing_view, name='calculate_pricing'),
    path('pricing/quotes', views.shipping_quotes_view, name='shipping_quotes'),
    path('pricing/batch', views.batch_pricing_view, name='batch_pricing'),
]
