from tortoise import BaseDBAsyncClient


async def upgrade(db: BaseDBAsyncClient) -> str:
    return """
        CREATE TABLE IF NOT EXISTS "user_profiles" (
    "id" SERIAL NOT NULL PRIMARY KEY,
    "name" VARCHAR(255) NOT NULL,
    "email" VARCHAR(255) NOT NULL UNIQUE,
    "password" VARCHAR(255) NOT NULL,
    "role" VARCHAR(255) NOT NULL  DEFAULT 'user',
    "ai_provider" VARCHAR(32),
    "ai_api_key" TEXT,
    "ai_model" VARCHAR(128),
    "created_at" TIMESTAMPTZ NOT NULL  DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL  DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS "locations" (
    "id" SERIAL NOT NULL PRIMARY KEY,
    "location_id" VARCHAR(128) NOT NULL,
    "company_id" VARCHAR(128),
    "name" VARCHAR(255),
    "access_token" TEXT NOT NULL,
    "refresh_token" TEXT,
    "expires_at" TIMESTAMPTZ,
    "token_type" VARCHAR(7) NOT NULL  DEFAULT 'oauth',
    "user_type" VARCHAR(32),
    "scope" TEXT,
    "created_at" TIMESTAMPTZ NOT NULL  DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL  DEFAULT CURRENT_TIMESTAMP,
    "user_id" INT REFERENCES "user_profiles" ("id") ON DELETE CASCADE,
    CONSTRAINT "uid_locations_user_id_5b1a0e" UNIQUE ("user_id", "location_id")
);
CREATE INDEX IF NOT EXISTS "idx_locations_locatio_3f6c2d" ON "locations" ("location_id");
CREATE UNIQUE INDEX IF NOT EXISTS "uid_locations_ownerless" ON "locations" ("location_id") WHERE "user_id" IS NULL;
COMMENT ON COLUMN "locations"."token_type" IS 'OAUTH: oauth\nPRIVATE: private';
COMMENT ON TABLE "locations" IS 'A GHL location (or company) connected by a user.';
CREATE TABLE IF NOT EXISTS "integration_oauth_state" (
    "id" SERIAL NOT NULL PRIMARY KEY,
    "state" VARCHAR(128) NOT NULL UNIQUE,
    "redirect_to" VARCHAR(512),
    "created_at" TIMESTAMPTZ NOT NULL  DEFAULT CURRENT_TIMESTAMP,
    "user_id" INT NOT NULL REFERENCES "user_profiles" ("id") ON DELETE CASCADE
);
COMMENT ON TABLE "integration_oauth_state" IS 'Temporary state row for the OAuth ''state'' param so the callback can identify the user.';
CREATE TABLE IF NOT EXISTS "scheduled_prompts" (
    "id" SERIAL NOT NULL PRIMARY KEY,
    "location_id" VARCHAR(128) NOT NULL,
    "custom_value_id" VARCHAR(128) NOT NULL,
    "custom_value_name" VARCHAR(255) NOT NULL,
    "prompt_template" TEXT NOT NULL,
    "schedule_type" VARCHAR(7) NOT NULL  DEFAULT 'daily',
    "schedule_time" VARCHAR(5) NOT NULL  DEFAULT '09:00',
    "schedule_day" INT NOT NULL  DEFAULT 0,
    "timezone" VARCHAR(64) NOT NULL  DEFAULT 'UTC',
    "next_run_at" TIMESTAMPTZ NOT NULL,
    "last_run_at" TIMESTAMPTZ,
    "last_result" TEXT,
    "last_error" TEXT,
    "claimed_until" TIMESTAMPTZ,
    "is_active" BOOL NOT NULL  DEFAULT True,
    "created_at" TIMESTAMPTZ NOT NULL  DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL  DEFAULT CURRENT_TIMESTAMP,
    "user_id" INT NOT NULL REFERENCES "user_profiles" ("id") ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS "idx_scheduled_p_locatio_8e21c4" ON "scheduled_prompts" ("location_id");
CREATE INDEX IF NOT EXISTS "idx_scheduled_p_next_ru_0a9d51" ON "scheduled_prompts" ("next_run_at");
COMMENT ON COLUMN "scheduled_prompts"."schedule_type" IS 'DAILY: daily\nWEEKLY: weekly\nMONTHLY: monthly';
COMMENT ON TABLE "scheduled_prompts" IS 'A prompt template that is re-run on a schedule; its output overwrites one custom value.';
CREATE TABLE IF NOT EXISTS "wizard_templates" (
    "id" SERIAL NOT NULL PRIMARY KEY,
    "location_id" VARCHAR(128) NOT NULL,
    "name" VARCHAR(255) NOT NULL,
    "description" TEXT,
    "form_fields" JSONB NOT NULL,
    "created_at" TIMESTAMPTZ NOT NULL  DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL  DEFAULT CURRENT_TIMESTAMP,
    "user_id" INT NOT NULL REFERENCES "user_profiles" ("id") ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS "idx_wizard_temp_locatio_c47e09" ON "wizard_templates" ("location_id");
CREATE TABLE IF NOT EXISTS "wizard_sessions" (
    "id" SERIAL NOT NULL PRIMARY KEY,
    "access_token" VARCHAR(128) NOT NULL UNIQUE,
    "client_name" VARCHAR(255),
    "client_email" VARCHAR(255),
    "responses" JSONB,
    "status" VARCHAR(9) NOT NULL  DEFAULT 'pending',
    "expires_at" TIMESTAMPTZ NOT NULL,
    "completed_at" TIMESTAMPTZ,
    "created_at" TIMESTAMPTZ NOT NULL  DEFAULT CURRENT_TIMESTAMP,
    "template_id" INT NOT NULL REFERENCES "wizard_templates" ("id") ON DELETE CASCADE
);
COMMENT ON COLUMN "wizard_sessions"."status" IS 'PENDING: pending\nCOMPLETED: completed';
CREATE TABLE IF NOT EXISTS "aerich" (
    "id" SERIAL NOT NULL PRIMARY KEY,
    "version" VARCHAR(255) NOT NULL,
    "app" VARCHAR(100) NOT NULL,
    "content" JSONB NOT NULL
);"""


async def downgrade(db: BaseDBAsyncClient) -> str:
    return """
        """
