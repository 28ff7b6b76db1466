from .handlers import Response, handler
