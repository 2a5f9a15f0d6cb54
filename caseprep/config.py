from dotenv import load_dotenv
from pathlib import Path
import os

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB connection
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'caseprep')

# Redis cache; caching is disabled when no URL is configured
REDIS_URL = os.environ.get('REDIS_URL', '')

# JWT Configuration
SECRET_KEY = os.environ.get('JWT_SECRET', 'your-secret-key-change-in-production')
if SECRET_KEY == 'your-secret-key-change-in-production':
    print("WARNING: Using default JWT_SECRET. Set JWT_SECRET environment variable for production.")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get('ACCESS_TOKEN_EXPIRE_MINUTES', '30'))

CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')

# Seeding endpoints require this token in the X-Admin-Token header
ADMIN_TOKEN = os.environ.get('ADMIN_TOKEN', '')

# OpenAI
OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY', '')
OPENAI_MODEL = os.environ.get('OPENAI_MODEL', 'gpt-4o-mini')
OPENAI_MAX_TOKENS = 2048
OPENAI_TEMPERATURE = 0.7
OPENAI_TIMEOUT_SECONDS = 10.0
OPENAI_MAX_RETRIES = 3
OPENAI_RETRY_DELAY = 1.0
OPENAI_BACKOFF_FACTOR = 1.5

# Feedback persistence retries (linear backoff)
FEEDBACK_MAX_RETRIES = 3
FEEDBACK_RETRY_DELAY = 1.0

# Stripe
STRIPE_SECRET_KEY = os.environ.get('STRIPE_SECRET_KEY', '')
STRIPE_WEBHOOK_SECRET = os.environ.get('STRIPE_WEBHOOK_SECRET', '')
STRIPE_PRICES = {
    "BASIC": os.environ.get('STRIPE_PRICE_BASIC', ''),
    "PREMIUM": os.environ.get('STRIPE_PRICE_PREMIUM', ''),
}
CHECKOUT_SUCCESS_URL = os.environ.get('CHECKOUT_SUCCESS_URL', 'http://localhost:3000/subscription?status=success')
CHECKOUT_CANCEL_URL = os.environ.get('CHECKOUT_CANCEL_URL', 'http://localhost:3000/subscription?status=cancel')
BILLING_PORTAL_RETURN_URL = os.environ.get('BILLING_PORTAL_RETURN_URL', 'http://localhost:3000/subscription')

# Resend
RESEND_API_KEY = os.environ.get('RESEND_API_KEY', '')
EMAIL_FROM = os.environ.get('EMAIL_FROM', 'Case Prep <noreply@caseprep.app>')

# Drill time limits in minutes
DRILL_TIME_LIMITS = {
    "CASE_PROMPT": 30,
    "CALCULATION": 15,
    "CASE_MATH": 20,
    "BRAINSTORMING": 25,
    "MARKET_SIZING": 20,
    "SYNTHESIZING": 30,
}
MAX_CONCURRENT_DRILL_ATTEMPTS = 3

# Daily usage limits per subscription tier
RATE_LIMITS = {
    "FREE": {"drill_attempts_per_day": 10, "simulation_attempts_per_day": 2},
    "BASIC": {"drill_attempts_per_day": 30, "simulation_attempts_per_day": 5},
    "PREMIUM": {"drill_attempts_per_day": 100, "simulation_attempts_per_day": 15},
}

# Cache TTLs in seconds
CACHE_TTL = {
    "drill": 3600,
    "user": 1800,
    "simulation": 7200,
    "feedback": 3600,
}

# Ecosystem simulation bounds
SIMULATION_MIN_SPECIES = 2
SIMULATION_MAX_SPECIES = int(os.environ.get('SIMULATION_MAX_SPECIES', '8'))
SIMULATION_MIN_TIME_LIMIT = 300
SIMULATION_MAX_TIME_LIMIT = 3600
