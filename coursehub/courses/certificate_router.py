from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from coursehub.core.errors import NotFoundError
from coursehub.courses.certificate_service import get_certificate, get_user_certificates, verify_certificate
from coursehub.courses.dependencies import get_db

router = APIRouter(tags=["Certificates"])


@router.get("/user/{user_id}")
async def list_user_certificates(user_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    certificates = await get_user_certificates(db, user_id)
    return {
        "success": True,
        "certificates": [c.to_response() for c in certificates],
        "count": len(certificates),
    }


@router.get("/verify/{certificate_number}")
async def verify_certificate_number(certificate_number: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Public check that a certificate number is genuine"""
    certificate = await verify_certificate(db, certificate_number)
    if certificate is None:
        raise NotFoundError("Certificate not found")
    return {"success": True, "valid": True, "certificate": certificate.to_response()}


@router.get("/{certificate_id}")
async def get_certificate_endpoint(certificate_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    certificate = await get_certificate(db, certificate_id)
    if certificate is None:
        raise NotFoundError("Certificate not found")
    return {"success": True, "certificate": certificate.to_response()}
