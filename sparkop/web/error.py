class NotFoundError(Exception):
    """Resource not found"""
    pass

class AuthenticationError(Exception):
    """Error when trying to connect to a spark master."""
    pass

class EndpointConnectionError(Exception):
    """Endpoint could not be reached or answered with an error status."""
    pass

class ResponseReadError(Exception):
    """Response body could not be read completely."""
    pass
