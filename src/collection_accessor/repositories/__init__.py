from .mongo_repo import MongoRepository

__all__ = ["MongoRepository"]
