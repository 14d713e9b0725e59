from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('finance/ledger/', include('apps.finance.accounts.urls')),
]
