"""
Services layer - business rules live here, routes stay thin.

Each service is a class holding a Firestore client and is shared through a
module-level ``get_*_service()`` getter.
"""
