# Generated migration for user app

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='UserProfile',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('display_name', models.CharField(blank=True, default='', max_length=150)),
                ('photo_url', models.URLField(blank=True, max_length=500, null=True)),
                ('friends_count', models.IntegerField(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                ('last_seen', models.DateTimeField(default=django.utils.timezone.now)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('selected_restaurant_id', models.CharField(blank=True, default='', max_length=255)),
                ('selected_restaurant_name', models.CharField(blank=True, default='', max_length=255)),
                ('selected_at', models.DateTimeField(blank=True, null=True)),
                ('selection_expires_at', models.DateTimeField(blank=True, null=True)),
                ('user', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='profile',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
        ),
        migrations.CreateModel(
            name='Friendship',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('friend', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='friend_of_relation',
                    to='user.userprofile',
                )),
                ('profile', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='friendship_relation',
                    to='user.userprofile',
                )),
            ],
            options={
                'unique_together': {('profile', 'friend')},
            },
        ),
        migrations.AddField(
            model_name='userprofile',
            name='friends',
            field=models.ManyToManyField(
                related_name='+',
                symmetrical=False,
                through='user.Friendship',
                through_fields=('profile', 'friend'),
                to='user.userprofile',
            ),
        ),
        migrations.CreateModel(
            name='FriendRequest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('status', models.CharField(
                    choices=[('PENDING', 'Pending'), ('ACCEPTED', 'Accepted'), ('DECLINED', 'Declined')],
                    default='PENDING',
                    max_length=20,
                )),
                ('sent_at', models.DateTimeField(auto_now_add=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True)),
                ('from_user', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='sent_friend_requests',
                    to='user.userprofile',
                )),
                ('to_user', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='received_friend_requests',
                    to='user.userprofile',
                )),
            ],
            options={
                'ordering': ['-sent_at'],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(('status', 'PENDING')),
                        fields=('from_user', 'to_user'),
                        name='unique_pending_friend_request',
                    ),
                ],
            },
        ),
    ]
