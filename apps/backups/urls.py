from django.urls import path
from . import views

app_name = 'backups'

urlpatterns = [
    # GET  /api/backups/export/   - Download backup (?since= for incremental)
    # POST /api/backups/verify/   - Verify a backup document
    # POST /api/backups/restore/  - Restore (dry run by default)
    path('export/', views.export_backup, name='export'),
    path('verify/', views.verify_backup, name='verify'),
    path('restore/', views.restore_backup, name='restore'),
]
