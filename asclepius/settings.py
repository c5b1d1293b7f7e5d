import os
from dotenv import load_dotenv

# Load .env for local dev; Docker injects the same names at runtime
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env"))

# --- directory store ---------------------------------------------------------
MONGO_URI = os.getenv("MONGO_URI", "mongodb://mongo:27017")
MONGO_DB = os.getenv("MONGO_DB", "asclepius_dev")

# --- identity ----------------------------------------------------------------
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
JWT_ALG = os.getenv("JWT_ALG", "HS256")
ACCESS_TOKEN_EXPIRE_MIN = int(os.getenv("ACCESS_TOKEN_EXPIRE_MIN", "60"))

# --- blob store --------------------------------------------------------------
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "azure").lower()

AZURE_BLOB_CONN_STR = os.getenv("AZURE_BLOB_CONN_STR", "")
AZURE_CONTAINER_MEDIA = os.getenv("AZURE_CONTAINER_MEDIA", "asclepius-media")

S3_ENDPOINT = os.getenv("S3_ENDPOINT", "http://minio:9000")
S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY", "admin")
S3_SECRET_KEY = os.getenv("S3_SECRET_KEY", "adminadmin")
S3_BUCKET_MEDIA = os.getenv("S3_BUCKET_MEDIA", "asclepius-media")

MEDIA_URL_EXPIRE_HOURS = int(os.getenv("MEDIA_URL_EXPIRE_HOURS", "168"))
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "50"))

# --- chat --------------------------------------------------------------------
# "mongo" needs a replica set (change streams); "local" fans out in-process
CHAT_FEED = os.getenv("CHAT_FEED", "local").lower()

# --- logging -----------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text").lower()
