from .app import create_app, EventFeed, WebServer

__all__ = ['create_app', 'EventFeed', 'WebServer']
