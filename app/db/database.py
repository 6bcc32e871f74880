# app/db/database.py
import motor.motor_asyncio
from pymongo import IndexModel, ASCENDING, DESCENDING
from pymongo.errors import PyMongoError
import logging

from app.core.config import MONGODB_URL, DATABASE_NAME
from app.db.store import MongoDataStore, PROFILES, ITEMS, LOANS

logger = logging.getLogger(__name__)

INDEXES = {
    PROFILES: [
        IndexModel([("email", ASCENDING)], name="profile_email_index"),
        IndexModel([("role", ASCENDING), ("status", ASCENDING)], name="profile_role_status_index"),
        IndexModel([("tanggal_daftar", DESCENDING)], name="profile_tanggal_daftar_index"),
    ],
    ITEMS: [
        IndexModel([("nama", ASCENDING)], name="alat_nama_index"),
        IndexModel([("kategori", ASCENDING), ("nama", ASCENDING)], name="alat_kategori_nama_index"),
        IndexModel([("jumlah", ASCENDING)], name="alat_jumlah_index"),
    ],
    LOANS: [
        IndexModel([("user_id", ASCENDING), ("created_at", DESCENDING)], name="peminjaman_user_index"),
        IndexModel([("alat_id", ASCENDING), ("status", ASCENDING)], name="peminjaman_alat_status_index"),
        IndexModel([("status", ASCENDING)], name="peminjaman_status_index"),
        IndexModel([("created_at", DESCENDING)], name="peminjaman_created_at_index"),
    ],
}


async def init_db(client: motor.motor_asyncio.AsyncIOMotorClient = None) -> MongoDataStore:
    """Buat koneksi Motor, pastikan index ada, dan kembalikan DataStore."""
    logger.info("Connecting to MongoDB...")
    if client is None:
        client = motor.motor_asyncio.AsyncIOMotorClient(MONGODB_URL, tz_aware=True)

    database = client[DATABASE_NAME]
    logger.info(f"Using database: {DATABASE_NAME}")

    for collection_name, indexes in INDEXES.items():
        try:
            await database[collection_name].create_indexes(indexes)
        except PyMongoError as e:
            # Index gagal dibuat tidak menghentikan startup
            logger.error(f"Failed to create indexes for '{collection_name}': {e}")
    logger.info("Index initialization complete for all collections.")
    return MongoDataStore(database)
