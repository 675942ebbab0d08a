# Generated migration for restaurants app

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Restaurant',
            fields=[
                ('place_id', models.CharField(max_length=255, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('address', models.CharField(blank=True, default='', max_length=512)),
                ('latitude', models.FloatField()),
                ('longitude', models.FloatField()),
                ('geohash', models.CharField(blank=True, db_index=True, default='', max_length=12)),
                ('google_rating', models.FloatField(blank=True, null=True)),
                ('price_level', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('photo_reference', models.CharField(blank=True, default='', max_length=512)),
                ('phone_number', models.CharField(blank=True, default='', max_length=64)),
                ('website', models.URLField(blank=True, default='', max_length=500)),
                ('opening_hours', models.JSONField(blank=True, default=dict)),
                ('types', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'restaurants_restaurant',
                'ordering': ['name'],
            },
        ),
    ]
