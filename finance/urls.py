from django.urls import path
from .import views

urlpatterns = [

    # Contracts
    path('contracts/', views.ContractListCreateView.as_view(), name='contract-list'),
    path('contracts/<int:contract_id>/', views.ContractDetailView.as_view(), name='contract-detail'),
    path('contracts/<int:contract_id>/status/', views.ContractStatusView.as_view(), name='contract-status'),
    path('contracts/<int:contract_id>/recalc/', views.ContractRecalcView.as_view(), name='contract-recalc'),

    # Installments
    path('installments/', views.InstallmentListView.as_view(), name='installment-list'),
    path('installments/<int:installment_id>/', views.InstallmentDetailView.as_view(), name='installment-detail'),
    path('installments/<int:installment_id>/payments/', views.InstallmentPaymentsView.as_view(), name='installment-payments'),
    path('installments/<int:installment_id>/pay/', views.InstallmentPayView.as_view(), name='installment-pay'),

    # Payments
    path('payments/', views.PaymentListCreateView.as_view(), name='payment-list'),
    path('payments/<int:payment_id>/', views.PaymentDetailView.as_view(), name='payment-detail'),

    # Administrative jobs
    path('admin/jobs/run/', views.JobRunView.as_view(), name='admin-job-run'),
    path('admin/reminders/preview/', views.ReminderPreviewView.as_view(), name='admin-reminders-preview'),
    path('admin/reminders/send/', views.ReminderSendView.as_view(), name='admin-reminders-send'),
    path('admin/run-notifications/', views.RunNotificationsView.as_view(), name='admin-run-notifications'),
    path('admin/notifications/', views.NotificationLogListView.as_view(), name='admin-notification-log'),
]
