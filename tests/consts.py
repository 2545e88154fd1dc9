API_BASE = "/api/v1"

TEST_JWT_SECRET = "test-jwt-secret"
TEST_CRON_SECRET = "test-cron-secret"

ORG_DOMAIN = "acme.com"
ALICE = "alice@acme.com"
BOB = "bob@acme.com"
CAROL = "carol@acme.com"
DAVE = "dave@acme.com"

DRIVE_SCOPE = "https://www.googleapis.com/auth/drive.readonly"
CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar.readonly"
EMAIL_SCOPE = "email"
