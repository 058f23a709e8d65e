import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('customer', '0001_initial'),
        ('products', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='NotificationLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(db_index=True, max_length=50)),
                ('payload', models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
            ],
            options={
                'db_table': 'notification_logs',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['type', '-created_at'], name='notificatio_type_b66b8c_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Contract',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('total_cents', models.PositiveBigIntegerField(help_text='Contract total in cents')),
                ('months', models.PositiveIntegerField(help_text='Number of monthly installments', validators=[django.core.validators.MinValueValidator(1)])),
                ('start_date', models.DateTimeField(help_text='Due date of the first installment')),
                ('status', models.CharField(choices=[('ACTIVE', 'Active'), ('CLOSED', 'Closed'), ('DEFAULTED', 'Defaulted')], default='ACTIVE', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='contracts_created', to=settings.AUTH_USER_MODEL)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='contracts', to='customer.customer')),
            ],
            options={
                'db_table': 'contracts',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['customer', '-created_at'], name='contracts_custome_06db1b_idx'),
                    models.Index(fields=['status'], name='contracts_status_093df1_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ContractItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('qty', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('unit_cents', models.PositiveIntegerField(help_text='Unit price snapshot in cents')),
                ('contract', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='finance.contract')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='contract_items', to='products.product')),
            ],
            options={
                'db_table': 'contract_items',
                'ordering': ['contract', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Installment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('seq', models.PositiveIntegerField(help_text='Installment sequence number (1, 2, 3...)')),
                ('due_date', models.DateTimeField(help_text='Payment due date')),
                ('amount_cents', models.PositiveBigIntegerField(help_text='Amount owed in cents')),
                ('paid_cents', models.PositiveBigIntegerField(default=0, help_text='Amount paid in cents')),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('PAID', 'Paid'), ('LATE', 'Late')], default='PENDING', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('contract', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='installments', to='finance.contract')),
            ],
            options={
                'db_table': 'installments',
                'ordering': ['contract', 'seq'],
                'indexes': [
                    models.Index(fields=['contract', 'seq'], name='installment_contrac_a94383_idx'),
                    models.Index(fields=['due_date'], name='installment_due_dat_b37d9a_idx'),
                    models.Index(fields=['status'], name='installment_status_3280a9_idx'),
                ],
                'unique_together': {('contract', 'seq')},
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount_cents', models.PositiveBigIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('paid_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('installment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='finance.installment')),
                ('received_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='payments_received', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'payments',
                'ordering': ['-paid_at'],
                'indexes': [
                    models.Index(fields=['installment', '-paid_at'], name='payments_install_d97256_idx'),
                    models.Index(fields=['paid_at'], name='payments_paid_at_c989bb_idx'),
                ],
            },
        ),
    ]
