"""
MongoDB Setup Script
Tests connection and initializes the context collection with its indexes.
"""
import asyncio
from src.repositories import MongoContextStore, db_manager
from src.config import settings


async def setup_mongodb():
    """Initialize the MongoDB database used by the mongodb context store backend."""
    print("🔄 Connecting to MongoDB...")
    print(f"   Database: {settings.mongodb_database}")
    print()

    try:
        await db_manager.connect()
        db = db_manager.database
        await db.command("ping")
        print("✅ Connection successful!")
        print()

        existing_collections = await db.list_collection_names()
        print(f"📦 Existing collections: {existing_collections or 'None'}")
        print()

        print("🔨 Creating indexes...")
        store = MongoContextStore(db)
        await store.connect()
        print("✅ Indexes created successfully!")
        print()

        indexes = await store.collection.index_information()
        print(f"📊 {store.collection_name}: {len(indexes)} indexes")
        for idx_name in indexes:
            print(f"      - {idx_name}")

        print()
        print("🎉 MongoDB setup complete!")
        print()

    except Exception as e:
        print(f"❌ Error: {e}")
        print()
        print("💡 Troubleshooting:")
        print("   1. Check MONGODB_URI points at a reachable server")
        print("   2. Check that the username and password are correct")
        print("   3. If using Atlas, verify your IP is whitelisted in Network Access")
        raise

    finally:
        await db_manager.disconnect()
        print("👋 Disconnected from MongoDB")


if __name__ == "__main__":
    asyncio.run(setup_mongodb())
