# Generated migration for reviews app

import django.core.validators
import django.db.models.deletion
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('restaurants', '0001_initial'),
        ('user', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('restaurant_name', models.CharField(max_length=255)),
                ('user_name', models.CharField(max_length=150)),
                ('user_photo_url', models.URLField(blank=True, max_length=500, null=True)),
                ('rating', models.FloatField(validators=[
                    django.core.validators.MinValueValidator(1.0),
                    django.core.validators.MaxValueValidator(5.0),
                ])),
                ('review_text', models.TextField(blank=True, default='')),
                ('photos', models.JSONField(blank=True, default=list)),
                ('is_verified_visit', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('likes', models.ManyToManyField(blank=True, related_name='liked_reviews', to='user.userprofile')),
                ('restaurant', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='reviews',
                    to='restaurants.restaurant',
                )),
                ('user', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='reviews',
                    to='user.userprofile',
                )),
            ],
            options={
                'db_table': 'reviews_review',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['restaurant', 'created_at'], name='review_restaurant_created_idx'),
                ],
                'unique_together': {('user', 'restaurant')},
            },
        ),
        migrations.CreateModel(
            name='RestaurantRating',
            fields=[
                ('restaurant', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    primary_key=True,
                    related_name='rating_aggregate',
                    serialize=False,
                    to='restaurants.restaurant',
                )),
                ('average_rating', models.FloatField(default=0.0)),
                ('total_reviews', models.PositiveIntegerField(default=0)),
                ('rating_distribution', models.JSONField(blank=True, default=dict)),
                ('last_updated', models.DateTimeField()),
            ],
            options={
                'db_table': 'reviews_restaurant_rating',
            },
        ),
    ]
