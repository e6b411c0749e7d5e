import django.contrib.auth.models
import django.contrib.auth.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


def _message_fields():
    return [
        ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
        ('content', models.TextField()),
        ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
        ('is_read', models.BooleanField(default=False)),
        ('client_token', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
        ('receiver', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='+', to=settings.AUTH_USER_MODEL)),
        ('sender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='+', to=settings.AUTH_USER_MODEL)),
    ]


def _notification_fields():
    return [
        ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
        ('type', models.CharField(choices=[('appointment', 'appointment'), ('inventory', 'inventory'), ('message', 'message'), ('user', 'user'), ('alert', 'alert'), ('success', 'success')], max_length=16)),
        ('title', models.CharField(max_length=255)),
        ('message', models.TextField()),
        ('data', models.JSONField(blank=True, default=dict)),
        ('is_read', models.BooleanField(default=False)),
        ('created_at', models.DateTimeField(auto_now_add=True)),
        ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='+', to=settings.AUTH_USER_MODEL)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('email', models.EmailField(blank=True, max_length=254, verbose_name='email address')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('role', models.CharField(choices=[('staff', 'Staff'), ('patient', 'Patient'), ('provider', 'Provider')], db_index=True, default='patient', max_length=16)),
                ('avatar_url', models.URLField(blank=True, default='', max_length=512)),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'abstract': False,
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='StaffMessage',
            fields=_message_fields(),
            options={
                'db_table': 'staff_messages',
                'ordering': ['created_at', 'id'],
                'abstract': False,
                'indexes': [
                    models.Index(fields=['sender', 'receiver', 'created_at'], name='staff_msg_pair_idx'),
                    models.Index(fields=['receiver', 'is_read'], name='staff_msg_unread_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=['sender', 'client_token'], name='staff_msg_token_uniq'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PatientMessage',
            fields=_message_fields(),
            options={
                'db_table': 'patient_messages',
                'ordering': ['created_at', 'id'],
                'abstract': False,
                'indexes': [
                    models.Index(fields=['sender', 'receiver', 'created_at'], name='patient_msg_pair_idx'),
                    models.Index(fields=['receiver', 'is_read'], name='patient_msg_unread_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=['sender', 'client_token'], name='patient_msg_token_uniq'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StaffNotification',
            fields=_notification_fields(),
            options={
                'db_table': 'staff_notifications',
                'ordering': ['-created_at', '-id'],
                'abstract': False,
                'indexes': [
                    models.Index(fields=['recipient', 'is_read', 'created_at'], name='staff_notif_inbox_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PatientNotification',
            fields=_notification_fields(),
            options={
                'db_table': 'patient_notifications',
                'ordering': ['-created_at', '-id'],
                'abstract': False,
                'indexes': [
                    models.Index(fields=['recipient', 'is_read', 'created_at'], name='patient_notif_inbox_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AuditEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=64)),
                ('object_type', models.CharField(blank=True, max_length=64, null=True)),
                ('object_id', models.IntegerField(blank=True, null=True)),
                ('detail', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['action', 'created_at'], name='audit_action_idx'),
                    models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_idx'),
                ],
            },
        ),
    ]
