# models/wizard.py
from enum import Enum

from tortoise import fields, models


class TargetMode(str, Enum):
    CREATE_NEW = "create_new"          # write to a custom value by name, creating it if missing
    BIND_EXISTING = "bind_existing"    # overwrite a known custom value id


class SessionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class WizardTemplate(models.Model):
    """
    A questionnaire owned by a user for one location.
    `form_fields` is an ordered list of
    {id, label, type, required, target_mode, target_name, target_id}.
    """
    id = fields.IntField(primary_key=True)
    user = fields.ForeignKeyField("models.User", related_name="wizard_templates")
    location_id = fields.CharField(max_length=128, index=True)
    name = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    form_fields = fields.JSONField(default=list)

    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "wizard_templates"


class WizardSession(models.Model):
    id = fields.IntField(primary_key=True)
    template = fields.ForeignKeyField("models.WizardTemplate", related_name="sessions", on_delete=fields.CASCADE)
    access_token = fields.CharField(max_length=128, unique=True)
    client_name = fields.CharField(max_length=255, null=True)
    client_email = fields.CharField(max_length=255, null=True)

    responses = fields.JSONField(null=True)   # field_id -> answer
    status = fields.CharEnumField(SessionStatus, default=SessionStatus.PENDING)
    expires_at = fields.DatetimeField()
    completed_at = fields.DatetimeField(null=True)

    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "wizard_sessions"
