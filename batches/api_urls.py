from django.urls import path
from . import api_views

urlpatterns = [
    path("batches/", api_views.api_batches, name="api-batches"),
    path("batches/<int:pk>/", api_views.api_batch_detail, name="api-batch-detail"),
    path("batches/<int:pk>/map/", api_views.api_batch_map, name="api-batch-map"),
    path("batches/<int:pk>/process/", api_views.api_batch_process, name="api-batch-process"),
]
