from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from coursehub.payments.gateway import RazorpayCheckoutGateway

_gateway: Optional[RazorpayCheckoutGateway] = None


def get_db_instance():
    """Get database from main module"""
    from coursehub.main import db
    return db

# ==================== DEPENDENCY FUNCTIONS ====================

async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return get_db_instance()


def get_gateway() -> RazorpayCheckoutGateway:
    """Payment gateway dependency, built on first use"""
    global _gateway
    if _gateway is None:
        _gateway = RazorpayCheckoutGateway()
    return _gateway
