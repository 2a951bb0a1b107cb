from django.urls import path

from . import views

app_name = 'ipd'

urlpatterns = [
    # Admissions
    path('', views.admission_list, name='admission_list'),
    path('admit/', views.create_admission, name='create_admission'),
    path('<int:admission_id>/edit/', views.edit_admission, name='edit_admission'),
    path('<int:admission_id>/discharge/', views.discharge, name='discharge'),
    path('changes/', views.ipd_changes, name='ipd_changes'),

    # Billing ledger
    path('<int:admission_id>/billing/', views.billing_detail, name='billing_detail'),
    path('<int:admission_id>/billing/services/add/', views.add_service, name='add_service'),
    path('<int:admission_id>/billing/services/bulk/', views.add_bulk_services, name='add_bulk_services'),
    path('<int:admission_id>/billing/services/delete/', views.delete_service, name='delete_service'),
    path('<int:admission_id>/billing/consultants/add/', views.add_consultant_charge, name='add_consultant_charge'),
    path('<int:admission_id>/billing/consultants/delete/', views.delete_consultant_charges, name='delete_consultant_charges'),
    path('<int:admission_id>/billing/payments/add/', views.record_payment, name='record_payment'),
    path('<int:admission_id>/billing/payments/<uuid:payment_id>/delete/', views.delete_payment, name='delete_payment'),
    path('<int:admission_id>/billing/discount/', views.apply_discount, name='apply_discount'),

    # Invoice
    path('<int:admission_id>/invoice/', views.view_invoice, name='view_invoice'),
    path('<int:admission_id>/invoice/pdf/', views.download_invoice_pdf, name='download_invoice_pdf'),

    # Beds
    path('beds/', views.bed_board, name='bed_board'),
    path('beds/<str:room_type>/options/', views.bed_options, name='bed_options'),
]
