# Generated migration for dining app

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
            name='GroupDining',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('restaurant_name', models.CharField(max_length=255)),
                ('restaurant_address', models.CharField(blank=True, default='', max_length=512)),
                ('organizer_name', models.CharField(max_length=150)),
                ('organizer_photo_url', models.URLField(blank=True, max_length=500, null=True)),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True, default='')),
                ('scheduled_date', models.DateTimeField()),
                ('max_participants', models.PositiveIntegerField(
                    validators=[django.core.validators.MinValueValidator(2)]
                )),
                ('status', models.CharField(
                    choices=[('ACTIVE', 'Active'), ('CANCELLED', 'Cancelled'), ('COMPLETED', 'Completed')],
                    default='ACTIVE',
                    max_length=20,
                )),
                ('reminder_sent_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('organizer', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='organized_dinings',
                    to='user.userprofile',
                )),
                ('participants', models.ManyToManyField(blank=True, related_name='group_dinings', to='user.userprofile')),
                ('restaurant', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='group_dinings',
                    to='restaurants.restaurant',
                )),
            ],
            options={
                'db_table': 'dining_group_dining',
                'ordering': ['scheduled_date'],
                'indexes': [
                    models.Index(fields=['status', 'scheduled_date'], name='dining_status_date_idx'),
                    models.Index(fields=['restaurant', 'scheduled_date'], name='dining_restaurant_date_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='GroupDiningInvitation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('from_user_name', models.CharField(max_length=150)),
                ('from_user_photo_url', models.URLField(blank=True, max_length=500, null=True)),
                ('group_title', models.CharField(max_length=255)),
                ('restaurant_name', models.CharField(max_length=255)),
                ('scheduled_date', models.DateTimeField()),
                ('status', models.CharField(
                    choices=[('PENDING', 'Pending'), ('ACCEPTED', 'Accepted'), ('DECLINED', 'Declined')],
                    default='PENDING',
                    max_length=20,
                )),
                ('sent_at', models.DateTimeField(auto_now_add=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True)),
                ('from_user', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='sent_dining_invitations',
                    to='user.userprofile',
                )),
                ('group_dining', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='invitations',
                    to='dining.groupdining',
                )),
                ('to_user', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='received_dining_invitations',
                    to='user.userprofile',
                )),
                ('restaurant', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='dining_invitations',
                    to='restaurants.restaurant',
                )),
            ],
            options={
                'db_table': 'dining_invitation',
                'ordering': ['-sent_at'],
                'indexes': [
                    models.Index(fields=['to_user', 'status'], name='invite_to_user_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(('status', 'PENDING')),
                        fields=('group_dining', 'to_user'),
                        name='unique_pending_dining_invite',
                    ),
                ],
            },
        ),
    ]
