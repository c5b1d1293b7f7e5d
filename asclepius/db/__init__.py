# asclepius/db/__init__.py
from motor.motor_asyncio import AsyncIOMotorClient

from asclepius import settings

# Lazy: motor does not connect until the first operation
client = AsyncIOMotorClient(settings.MONGO_URI, tz_aware=True)
db = client[settings.MONGO_DB]

# --- Collections (one per directory key-path root) ---
# athletes/{uid}                      -> athletes
# physios/{uid}                       -> physios
# exercises/{athleteId}/{exerciseId}  -> exercises
# symptomLogs/{athleteId}/{logId}     -> symptom_logs
# chats/{roomId}/{messageId}          -> chats
ATHLETES = "athletes"
PHYSIOS = "physios"
EXERCISES = "exercises"
SYMPTOM_LOGS = "symptom_logs"
CHATS = "chats"
USERS = "users"
REVOKED_TOKENS = "revoked_tokens"
ACTIVITY_LOGS = "activity_logs"


def get_db():
    """Resolved at call time so tests can swap ``db`` for an in-memory one."""
    return db
