import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# ============================================================================#
# ENVIRONMENT / SERVICES
# ============================================================================#
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
REDIS_URL = os.getenv("REDIS_URL")

# AI vision provider: openrouter | groq | gemini
AI_PROVIDER = os.getenv("AI_PROVIDER", "openrouter").lower()

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
OPENROUTER_MODEL = os.getenv("OPENROUTER_MODEL", "google/gemini-2.5-flash")

GROQ_API_KEY = os.getenv("GROQ_API_KEY")
GROQ_BASE_URL = os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1")
GROQ_MODEL = os.getenv("GROQ_MODEL", "meta-llama/llama-4-scout-17b-16e-instruct")

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

AI_TEMPERATURE = float(os.getenv("AI_TEMPERATURE", "0.4"))
AI_MAX_TOKENS = int(os.getenv("AI_MAX_TOKENS", "4096"))

# Timeout configuration for AI calls (seconds)
AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "60"))
AI_CONNECT_TIMEOUT = float(os.getenv("AI_CONNECT_TIMEOUT", "15"))

# ============================================================================#
# DIAGNOSIS TIERS
# ============================================================================#
KB_ACCEPT_THRESHOLD = float(os.getenv("KB_ACCEPT_THRESHOLD", "0.6"))
CACHE_ACCEPT_THRESHOLD = float(os.getenv("CACHE_ACCEPT_THRESHOLD", "0.6"))
CACHE_TRIGRAM_THRESHOLD = float(os.getenv("CACHE_TRIGRAM_THRESHOLD", "0.3"))
CACHE_CANDIDATE_LIMIT = int(os.getenv("CACHE_CANDIDATE_LIMIT", "20"))

# FinalScore = TEXT_WEIGHT * similarity + SYMPTOM_WEIGHT * symptom overlap
CACHE_TEXT_WEIGHT = float(os.getenv("CACHE_TEXT_WEIGHT", "0.6"))
CACHE_SYMPTOM_WEIGHT = float(os.getenv("CACHE_SYMPTOM_WEIGHT", "0.4"))

# 0 disables fuzzy symptom matching
SYMPTOM_FUZZY_THRESHOLD = float(os.getenv("SYMPTOM_FUZZY_THRESHOLD", "0"))

# Coalesce concurrent identical AI calls
AI_SINGLE_FLIGHT = os.getenv("AI_SINGLE_FLIGHT", "1") == "1"

DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "vi")

# ============================================================================#
# CACHE LIFECYCLE
# ============================================================================#
CACHE_TTL_DAYS = int(os.getenv("CACHE_TTL_DAYS", "90"))
CACHE_CLEANUP_INTERVAL = int(os.getenv("CACHE_CLEANUP_INTERVAL", "300"))  # 5 minutes
CACHE_SWEEP_LOCK_TTL = int(os.getenv("CACHE_SWEEP_LOCK_TTL", "120"))
RUN_BACKGROUND_TASKS = os.getenv("RUN_BACKGROUND_TASKS", "0") == "1"

# Rate limiting for POST /diagnosis
DIAGNOSIS_RATE_LIMIT = os.getenv("DIAGNOSIS_RATE_LIMIT", "30/minute")

DIAGNOSIS_CONFIG = {
    "kb_accept_threshold": KB_ACCEPT_THRESHOLD,
    "cache_accept_threshold": CACHE_ACCEPT_THRESHOLD,
    "cache_trigram_threshold": CACHE_TRIGRAM_THRESHOLD,
    "cache_candidate_limit": CACHE_CANDIDATE_LIMIT,
    "cache_text_weight": CACHE_TEXT_WEIGHT,
    "cache_symptom_weight": CACHE_SYMPTOM_WEIGHT,
    "cache_ttl_days": CACHE_TTL_DAYS,
    "ai_timeout_seconds": AI_TIMEOUT_SECONDS,
    "ai_single_flight": AI_SINGLE_FLIGHT,
    "symptom_fuzzy_threshold": SYMPTOM_FUZZY_THRESHOLD,
    "default_language": DEFAULT_LANGUAGE,
}
