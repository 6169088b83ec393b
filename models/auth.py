from tortoise import fields
from tortoise.models import Model


class User(Model):
    id = fields.IntField(primary_key=True)
    name = fields.CharField(max_length=255)
    email = fields.CharField(max_length=255, unique=True)
    password = fields.CharField(max_length=255)
    role = fields.CharField(max_length=255, default='user')

    # AI add-on settings; empty means "use the server's env keys"
    ai_provider = fields.CharField(max_length=32, null=True)   # openai|anthropic|openrouter
    ai_api_key = fields.TextField(null=True)
    ai_model = fields.CharField(max_length=128, null=True)

    locations: fields.ReverseRelation['Location']
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = 'user_profiles'
