from asclepius.db import (
    ACTIVITY_LOGS,
    ATHLETES,
    CHATS,
    EXERCISES,
    PHYSIOS,
    REVOKED_TOKENS,
    SYMPTOM_LOGS,
    USERS,
)


async def ensure_indexes(db):
    # identity
    await db[USERS].create_index("email", unique=True)
    await db[REVOKED_TOKENS].create_index("jti", unique=True)
    await db[REVOKED_TOKENS].create_index("exp")

    # directory
    await db[ATHLETES].create_index("email")
    await db[PHYSIOS].create_index("email")

    # per-athlete logs
    await db[EXERCISES].create_index([("athlete_id", 1), ("_id", 1)])
    await db[EXERCISES].create_index([("athlete_id", 1), ("status", 1), ("completion_date", -1)])
    await db[SYMPTOM_LOGS].create_index([("athlete_id", 1), ("timestamp", -1)])

    # chat rooms
    await db[CHATS].create_index([("room_id", 1), ("timestamp", 1), ("_id", 1)])

    # activity
    await db[ACTIVITY_LOGS].create_index([("user_id", 1), ("timestamp", -1)])
