import os
import logging
from motor.motor_asyncio import AsyncIOMotorClient
from typing import Optional
from dotenv import load_dotenv
from pymongo import ASCENDING, DESCENDING

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class Database:
    client: Optional[AsyncIOMotorClient] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB"""
        mongodb_url = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
        cls.client = AsyncIOMotorClient(mongodb_url)
        logger.info("[OK] Connected to MongoDB")

        await cls.create_indexes()

    @classmethod
    async def create_indexes(cls):
        """Create database indexes"""
        db = cls.get_db()

        # Competition indexes (listing and the draft sweep)
        try:
            await db.competitions.create_index([("creator_id", ASCENDING), ("status", ASCENDING)])
            await db.competitions.create_index([("status", ASCENDING), ("updated_at", ASCENDING)])
            logger.info("[OK] Created indexes on competitions")
        except Exception as e:
            logger.warning(f"[WARN] Indexes on competitions may already exist: {e}")

        # One membership per user and competition
        try:
            await db.competition_participants.create_index(
                [("competition_id", ASCENDING), ("user_id", ASCENDING)],
                unique=True
            )
            await db.competition_participants.create_index([("user_id", ASCENDING)])
            logger.info("[OK] Created indexes on competition_participants")
        except Exception as e:
            logger.warning(f"[WARN] Indexes on competition_participants may already exist: {e}")

        # One invitation per invitee and competition
        try:
            await db.competition_invitations.create_index(
                [("competition_id", ASCENDING), ("invitee_id", ASCENDING)],
                unique=True
            )
            await db.competition_invitations.create_index(
                [("invitee_id", ASCENDING), ("state", ASCENDING), ("invited_at", DESCENDING)]
            )
            logger.info("[OK] Created indexes on competition_invitations")
        except Exception as e:
            logger.warning(f"[WARN] Indexes on competition_invitations may already exist: {e}")

        # Webhook idempotency and the paid lookups
        try:
            await db.prize_payments.create_index([("payment_intent_id", ASCENDING)], unique=True)
            await db.prize_payments.create_index(
                [("competition_id", ASCENDING), ("type", ASCENDING), ("status", ASCENDING)]
            )
            await db.prize_payments.create_index([("invitation_id", ASCENDING), ("status", ASCENDING)])
            logger.info("[OK] Created indexes on prize_payments")
        except Exception as e:
            logger.warning(f"[WARN] Indexes on prize_payments may already exist: {e}")

        try:
            await db.profiles.create_index([("user_id", ASCENDING)], unique=True)
            logger.info("[OK] Created unique index on profiles.user_id")
        except Exception as e:
            logger.warning(f"[WARN] Index on profiles.user_id may already exist: {e}")

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection"""
        if cls.client:
            cls.client.close()
            logger.info("[OK] Disconnected from MongoDB")

    @classmethod
    def get_db(cls):
        """Get database instance"""
        if cls.client is None:
            return None
        database_name = os.getenv("DATABASE_NAME", "movetogether")
        return cls.client[database_name]
