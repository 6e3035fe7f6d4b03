"""
Error kinds raised by the stores and services.
Each carries the HTTP status the ingress layer should answer with;
components never build responses themselves.
"""
from typing import Any, List, Optional


class FeedError(Exception):
    status_code = 500

    def __init__(self, message: str, data: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.data = data


class ValidationError(FeedError):
    status_code = 422


class AuthError(FeedError):
    status_code = 401


class ForbiddenError(AuthError):
    """Ownership violation: authenticated, but not the resource's creator"""
    status_code = 403


class NotFoundError(FeedError):
    status_code = 404


class InternalError(FeedError):
    status_code = 500


class ImageUploadError(InternalError):
    status_code = 502
