import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(help_text='Product name (e.g., Galaxy A15 128GB)', max_length=200)),
                ('price_cents', models.PositiveIntegerField(help_text='Unit price in cents', validators=[django.core.validators.MinValueValidator(0)])),
                ('stock', models.PositiveIntegerField(default=0, help_text='Units currently on hand')),
                ('stock_threshold', models.PositiveIntegerField(default=5, help_text='Low-stock alert threshold')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Product',
                'verbose_name_plural': 'Products',
                'db_table': 'products',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['name'], name='products_name_6f9890_idx'),
                    models.Index(fields=['-created_at'], name='products_created_a77fb9_idx'),
                ],
            },
        ),
    ]
