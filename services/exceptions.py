from fastapi import status


class ChatError(Exception):
    """Base class for failures a caller can act on; carries the HTTP status it maps to"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidParty(ChatError):
    """Malformed identifier, or a user trying to talk to themselves"""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(ChatError):
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(ChatError):
    """Authenticated caller is not a party to the resource"""
    status_code = status.HTTP_403_FORBIDDEN


class EmptyMessage(ChatError):
    status_code = status.HTTP_400_BAD_REQUEST


class ValidationError(ChatError):
    status_code = status.HTTP_400_BAD_REQUEST


class UpstreamFailure(ChatError):
    """Object storage or database unavailable"""
    status_code = status.HTTP_502_BAD_GATEWAY
