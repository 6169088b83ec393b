# models/schedule.py
from enum import Enum

from tortoise import fields, models


class ScheduleType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ScheduledPrompt(models.Model):
    """
    A prompt template that is re-run on a schedule; its output overwrites one custom value.
    """
    id = fields.IntField(primary_key=True)
    user = fields.ForeignKeyField("models.User", related_name="scheduled_prompts")
    location_id = fields.CharField(max_length=128, index=True)
    custom_value_id = fields.CharField(max_length=128)
    custom_value_name = fields.CharField(max_length=255)
    prompt_template = fields.TextField()

    schedule_type = fields.CharEnumField(ScheduleType, default=ScheduleType.DAILY)
    schedule_time = fields.CharField(max_length=5, default="09:00")  # "HH:MM"
    schedule_day = fields.IntField(default=0)  # weekday for weekly runs, 0=Mon
    timezone = fields.CharField(max_length=64, default="UTC")

    next_run_at = fields.DatetimeField(index=True)
    last_run_at = fields.DatetimeField(null=True)
    last_result = fields.TextField(null=True)
    last_error = fields.TextField(null=True)
    # lease so two scheduler instances never act on the same row
    claimed_until = fields.DatetimeField(null=True)
    is_active = fields.BooleanField(default=True)

    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "scheduled_prompts"
