# models/crm.py
from enum import Enum

from tortoise import fields, models


class TokenType(str, Enum):
    OAUTH = "oauth"        # marketplace install, has a refresh_token
    PRIVATE = "private"    # private integration token pasted by the user


class Location(models.Model):
    """
    A GHL location (or company) connected by a user.
    Holds the bearer credential used for every upstream call on its behalf.
    """
    id = fields.IntField(primary_key=True)
    user = fields.ForeignKeyField("models.User", related_name="locations", null=True)
    location_id = fields.CharField(max_length=128, index=True)
    company_id = fields.CharField(max_length=128, null=True)
    name = fields.CharField(max_length=255, null=True)

    access_token = fields.TextField()
    refresh_token = fields.TextField(null=True)
    expires_at = fields.DatetimeField(null=True)
    token_type = fields.CharEnumField(TokenType, default=TokenType.OAUTH)
    user_type = fields.CharField(max_length=32, null=True)   # "Location" | "Company"
    scope = fields.TextField(null=True)

    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "locations"
        unique_together = (("user", "location_id"),)
        # ownerless rows: partial unique index on location_id WHERE user_id IS NULL (see migrations)


class IntegrationOAuthState(models.Model):
    """
    Temporary state row for the OAuth 'state' param so the callback can identify the user.
    """
    id = fields.IntField(primary_key=True)
    user = fields.ForeignKeyField("models.User", related_name="oauth_states")
    state = fields.CharField(max_length=128, unique=True)
    redirect_to = fields.CharField(max_length=512, null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "integration_oauth_state"
