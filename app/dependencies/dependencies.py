from fastapi import Request
from app.image_service.service import ListingService, UploadHandler

def get_upload_handler(request: Request) -> UploadHandler:
    """Dependency provider for UploadHandler"""
    return request.app.state.uploads

def get_listing_service(request: Request) -> ListingService:
    """Dependency provider for ListingService"""
    return request.app.state.listing

def get_byte_store(request: Request):
    """Dependency provider for the byte store"""
    return request.app.state.store
