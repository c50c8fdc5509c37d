from django.contrib import admin
from django.urls import path

urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),
]
